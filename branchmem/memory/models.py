# memory/models.py
# =========================
# 对话记忆数据模型（Chat Memory Models）
# 消息树节点 / 记忆条目 / 会话记录 / 宿主节点描述
# =========================

from __future__ import annotations

import json
import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Self


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# 序列化工具函数 / Serialization Utilities
# =============================================================================

def _serialize_value(value: Any) -> Any:
    """
    递归序列化值
    Recursively serialize value into JSON-friendly primitives
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value

    if isinstance(value, datetime):
        return value.isoformat()

    if isinstance(value, Enum):
        return value.value

    if isinstance(value, (list, tuple, set)):
        return [_serialize_value(item) for item in value]

    if isinstance(value, dict):
        return {k: _serialize_value(v) for k, v in value.items()}

    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _serialize_value(dataclasses.asdict(value))

    return str(value)


def _parse_datetime(value: Any) -> Any:
    if isinstance(value, str):
        parsed = datetime.fromisoformat(value)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return value


class SerializableMixin:
    """
    序列化/反序列化能力混入类
    Mixin for serialization/deserialization capabilities

    datetime 字段输出为 ISO 字符串，Enum 输出为值；
    from_dict 时按字段名还原（子类可覆盖 _deserialize_field）。
    """

    _datetime_fields: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        if not dataclasses.is_dataclass(self):
            raise TypeError(f"{self.__class__.__name__} 必须是 dataclass")
        return {f.name: _serialize_value(getattr(self, f.name)) for f in dataclasses.fields(self)}

    def to_json(self, ensure_ascii: bool = False) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=ensure_ascii)

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        if not dataclasses.is_dataclass(cls):
            raise TypeError(f"{cls.__name__} 必须是 dataclass")

        allowed = {f.name for f in dataclasses.fields(cls)}
        kwargs = {}
        for key, value in data.items():
            if key not in allowed:
                continue
            if key in cls._datetime_fields:
                value = _parse_datetime(value)
            kwargs[key] = cls._deserialize_field(key, value)
        return cls(**kwargs)

    @classmethod
    def from_json(cls, s: str) -> Self:
        return cls.from_dict(json.loads(s))

    @classmethod
    def _deserialize_field(cls, field_name: str, value: Any) -> Any:
        return value


# =============================================================================
# MessageRole
# =============================================================================

class MessageRole(str, Enum):
    """消息 / 记忆条目的角色"""
    HUMAN = "human"
    AI = "ai"
    SYSTEM = "system"
    TOOL = "tool"

    @classmethod
    def coerce(cls, value: Any) -> "MessageRole | str":
        """已知角色转为枚举，未知角色原样保留（由 adapter 当作 system 处理）"""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return value


# =============================================================================
# ChatMessage - 消息树节点
# =============================================================================

@dataclass
class ChatMessage(SerializableMixin):
    """
    对话消息（Chat Message）

    消息树中的一个节点。编辑 / 重试不会修改原消息，而是在同一 parent 下
    新建一个兄弟节点（revision_of_message_id / retry_of_message_id 指向被替代的兄弟）。

    A node in the conversation tree. Never mutated after creation.
    """
    id: str
    session_id: str
    role: MessageRole
    content: str = ""
    parent_message_id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    turn_id: Optional[str] = None
    revision_of_message_id: Optional[str] = None
    retry_of_message_id: Optional[str] = None
    seq: Optional[int] = None  # 存储层插入序号，用于时间戳相同时的排序

    _datetime_fields = ("created_at",)

    def __post_init__(self) -> None:
        self.role = MessageRole.coerce(self.role)

    @property
    def supersedes(self) -> Optional[str]:
        """被本消息替代的兄弟消息 id（编辑或重试），普通消息为 None"""
        return self.revision_of_message_id or self.retry_of_message_id


# =============================================================================
# MemoryEntry - 记忆条目
# =============================================================================

@dataclass
class MemoryEntry(SerializableMixin):
    """
    记忆条目（Memory Entry）

    某个 memory node 在某个 turn 里记下的一条事实。创建后不可修改；
    清空记忆时按 (session_id, memory_node_id) 整体删除。

    turn_id 为 None 表示不属于任何被追踪的 turn（例如手动执行），
    这类条目不会被后续的 turn-chain 过滤读到。
    """
    id: str
    session_id: str
    memory_node_id: str
    role: MessageRole
    content: str
    turn_id: Optional[str] = None
    name: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    seq: Optional[int] = None

    _datetime_fields = ("created_at",)

    def __post_init__(self) -> None:
        self.role = MessageRole.coerce(self.role)

    def to_view(self) -> "ChatMemoryEntry":
        return ChatMemoryEntry(
            id=self.id,
            role=self.role,
            content=self.content,
            name=self.name,
            created_at=self.created_at,
        )


@dataclass(frozen=True)
class ChatMemoryEntry:
    """暴露给 memory consumer 的条目视图（不包含存储字段）"""
    id: str
    role: MessageRole | str
    content: str
    name: Optional[str]
    created_at: datetime


# =============================================================================
# ChatSession - 会话记录
# =============================================================================

@dataclass
class ChatSession(SerializableMixin):
    """
    会话记录（Chat Session）

    每个 id 只创建一次；owner_id 创建后不可变。
    """
    id: str
    owner_id: str
    title: str
    last_message_at: datetime = field(default_factory=utcnow)
    workflow_id: Optional[str] = None
    agent_id: Optional[str] = None
    agent_name: Optional[str] = None
    provider: Optional[str] = None
    model: Optional[str] = None
    credential_id: Optional[str] = None
    tools: list = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)

    _datetime_fields = ("last_message_at", "created_at")

    def __post_init__(self) -> None:
        if not self.owner_id:
            raise ValueError("owner_id is required for a chat session")


# =============================================================================
# 宿主描述 / Host descriptors
# =============================================================================

@dataclass
class NodeDescriptor:
    """宿主工作流中的节点描述"""
    name: str
    type: str
    parameters: dict[str, Any] = field(default_factory=dict)


@dataclass
class WorkflowDescriptor:
    """宿主工作流描述（只用到 id / name / nodes）"""
    id: Optional[str]
    name: str = ""
    nodes: list[NodeDescriptor] = field(default_factory=list)

    def find_node(self, node_type: str) -> Optional[NodeDescriptor]:
        for node in self.nodes:
            if node.type == node_type:
                return node
        return None
