# memory/adapter.py
# =========================
# 条目编解码适配器（Entry Marshaling Adapter）
# 在 facade 的扁平条目 (role, content, name) 与 consumer 使用的结构化记录之间转换
# =========================

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, ClassVar, Iterable, Optional, Protocol, Union

from loguru import logger

from .models import ChatMemoryEntry, MessageRole


UNKNOWN_TOOL = "unknown"


# =============================================================================
# 结构化记录 / Typed records
# =============================================================================

@dataclass
class ToolCall:
    """AI 消息里携带的工具调用描述"""
    id: str
    name: str
    args: dict = field(default_factory=dict)
    type: str = "tool_call"

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "args": self.args, "type": self.type}

    @classmethod
    def from_dict(cls, data: dict) -> ToolCall:
        args = data.get("args")
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            args=args if isinstance(args, dict) else {},
            type=str(data.get("type", "tool_call")),
        )


@dataclass
class HumanRecord:
    role: ClassVar[MessageRole] = MessageRole.HUMAN
    content: Any
    name: Optional[str] = None


@dataclass
class AIRecord:
    role: ClassVar[MessageRole] = MessageRole.AI
    content: Any
    name: Optional[str] = None
    tool_calls: list[ToolCall] = field(default_factory=list)


@dataclass
class SystemRecord:
    role: ClassVar[MessageRole] = MessageRole.SYSTEM
    content: Any
    name: Optional[str] = None


@dataclass
class ToolRecord:
    role: ClassVar[MessageRole] = MessageRole.TOOL
    content: Any
    tool_call_id: str
    name: Optional[str] = None


ConversationRecord = Union[HumanRecord, AIRecord, SystemRecord, ToolRecord]


def _as_text(content: Any) -> str:
    return content if isinstance(content, str) else json.dumps(content, ensure_ascii=False)


# =============================================================================
# 读方向 / Read direction
# =============================================================================

def _load_object(raw: str) -> Optional[dict]:
    """JSON 解析为 dict，失败（或不是对象）返回 None"""
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return None
    return parsed if isinstance(parsed, dict) else None


def parse_human_content(raw: str) -> Optional[str]:
    """{"content": "..."} → 文本；格式不对返回 None"""
    parsed = _load_object(raw)
    if parsed is None or "content" not in parsed:
        return None
    return _as_text(parsed["content"])


def parse_ai_content(raw: str) -> Optional[tuple[str, list[ToolCall]]]:
    """{"content": "...", "toolCalls": [...]} → (文本, 工具调用)；格式不对返回 None"""
    parsed = _load_object(raw)
    if parsed is None or "content" not in parsed:
        return None
    calls = parsed.get("toolCalls") or []
    if not isinstance(calls, list):
        calls = []
    tool_calls = [ToolCall.from_dict(c) for c in calls if isinstance(c, dict)]
    return _as_text(parsed["content"]), tool_calls


def parse_tool_content(raw: str) -> Optional[dict]:
    """工具条目的四字段记录；格式不对返回 None"""
    parsed = _load_object(raw)
    if parsed is None or "toolCallId" not in parsed:
        return None
    return {
        "toolCallId": str(parsed.get("toolCallId")),
        "toolName": str(parsed.get("toolName") or UNKNOWN_TOOL),
        "toolInput": parsed.get("toolInput", {}),
        "toolOutput": parsed.get("toolOutput"),
    }


def _fallback(entry: ChatMemoryEntry, role: str) -> None:
    logger.warning(f"Malformed {role} memory entry {entry.id}, using raw content")


def entry_to_record(entry: ChatMemoryEntry) -> ConversationRecord:
    """
    条目 → 结构化记录

    content 解析失败（损坏或旧版的纯文本）时退化为把原始内容当作文本，
    不让整段历史加载失败。未知角色按 system 处理。
    """
    role = entry.role.value if isinstance(entry.role, MessageRole) else entry.role

    if role == MessageRole.HUMAN.value:
        text = parse_human_content(entry.content)
        if text is None:
            _fallback(entry, role)
            text = entry.content
        return HumanRecord(content=text, name=entry.name)

    if role == MessageRole.AI.value:
        parsed = parse_ai_content(entry.content)
        if parsed is None:
            _fallback(entry, role)
            parsed = (entry.content, [])
        text, tool_calls = parsed
        return AIRecord(content=text, name=entry.name, tool_calls=tool_calls)

    if role == MessageRole.TOOL.value:
        data = parse_tool_content(entry.content)
        if data is None:
            _fallback(entry, role)
            data = {
                "toolCallId": UNKNOWN_TOOL,
                "toolName": UNKNOWN_TOOL,
                "toolInput": {},
                "toolOutput": entry.content,
            }
        return ToolRecord(
            content=json.dumps(data["toolOutput"], ensure_ascii=False),
            tool_call_id=data["toolCallId"],
            name=data["toolName"],
        )

    if role != MessageRole.SYSTEM.value:
        logger.debug(f"Unknown role {role!r} on memory entry {entry.id}, treating as system")
    return SystemRecord(content=entry.content)


# =============================================================================
# 写方向 / Write direction
# =============================================================================

def encode_human(record: HumanRecord) -> str:
    return json.dumps({"content": _as_text(record.content)}, ensure_ascii=False)


def encode_ai(record: AIRecord) -> str:
    """工具调用元数据随文本一起保存，读回时可还原"""
    return json.dumps(
        {
            "content": _as_text(record.content),
            "toolCalls": [call.to_dict() for call in record.tool_calls],
        },
        ensure_ascii=False,
    )


class MemoryWriter(Protocol):
    """ChatMemoryService 中 adapter 用到的部分"""

    async def get_memory(self) -> list[ChatMemoryEntry]: ...

    async def add_human_message(self, content: str) -> Any: ...

    async def add_ai_message(self, content: str) -> Any: ...

    async def add_tool_message(
        self, tool_call_id: str, tool_name: str, tool_input: Any, tool_output: Any
    ) -> Any: ...

    async def clear_memory(self) -> Any: ...


class ChatMemoryHistory:
    """
    面向 memory consumer 的对话历史

    只依赖 facade 的公开接口，对存储形态一无所知。
    """

    def __init__(self, memory: MemoryWriter) -> None:
        self._memory = memory

    async def get_messages(self) -> list[ConversationRecord]:
        entries = await self._memory.get_memory()
        return [entry_to_record(entry) for entry in entries]

    async def add_message(self, record: ConversationRecord) -> None:
        if isinstance(record, HumanRecord):
            await self._memory.add_human_message(encode_human(record))
        elif isinstance(record, AIRecord):
            await self._memory.add_ai_message(encode_ai(record))
        elif isinstance(record, ToolRecord):
            # 工具输入在结构化记录中不可得
            await self._memory.add_tool_message(
                record.tool_call_id,
                record.name or UNKNOWN_TOOL,
                {},
                record.content,
            )
        else:
            logger.debug("System records are not persisted to memory")

    async def add_messages(self, records: Iterable[ConversationRecord]) -> None:
        for record in records:
            await self.add_message(record)

    async def add_user_message(self, text: str) -> None:
        await self.add_message(HumanRecord(content=text))

    async def add_ai_message(self, text: str) -> None:
        await self.add_message(AIRecord(content=text))

    async def clear(self) -> None:
        await self._memory.clear_memory()
