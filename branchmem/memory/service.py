# memory/service.py
# =========================
# 记忆访问服务（Memory Access Facade）+ 代理工厂
# 每次执行创建一个 ChatMemoryService，作用域固定为 (session, memory node, turn)
# =========================

from __future__ import annotations

import json
import uuid
from typing import Any, Optional

from loguru import logger

from .chain import build_message_chain, extract_turn_ids
from .config import ProxyConfig
from .errors import ChatMemoryAuthorizationError
from .models import (
    ChatMemoryEntry,
    MemoryEntry,
    MessageRole,
    NodeDescriptor,
    WorkflowDescriptor,
    utcnow,
)
from .session import SessionBootstrap
from .stores import ChatMemoryStore


HUMAN_ENTRY_NAME = "User"
AI_ENTRY_NAME = "AI"


class ChatMemoryService:
    """
    记忆访问服务（Memory Access Facade）

    memory consumer 唯一可以依赖的接口，不暴露任何存储细节。

    - 读：消息树 → active chain → turn ids → 该节点在这些 turn 内的条目
    - 写：追加条目，统一打上本次执行的 turn id 和 memory node id
    - execution_turn_id 为 None（手动执行）时照常写入，但之后不会被读到
    """

    def __init__(
        self,
        store: ChatMemoryStore,
        *,
        session_id: str,
        memory_node_id: str,
        execution_turn_id: Optional[str],
        owner_id: str,
        workflow_id: Optional[str] = None,
        agent_name: str = "",
        bootstrap: Optional[SessionBootstrap] = None,
    ) -> None:
        if not session_id:
            raise ValueError("session_id must not be empty")
        if not memory_node_id:
            raise ValueError("memory_node_id must not be empty")
        if not owner_id:
            raise ChatMemoryAuthorizationError("owner_id is required for chat memory")

        self._store = store
        self.session_id = session_id
        self.memory_node_id = memory_node_id
        self.execution_turn_id = execution_turn_id
        self._owner_id = owner_id
        self.workflow_id = workflow_id
        self.agent_name = agent_name
        self._bootstrap = bootstrap or SessionBootstrap(store)
        self._log = logger.bind(session_id=session_id, memory_node_id=memory_node_id)

    def get_owner_id(self) -> str:
        return self._owner_id

    # ===== 读 =====

    async def get_memory(self) -> list[ChatMemoryEntry]:
        """
        读取本节点在当前 active chain 上的全部记忆条目（按创建时间升序）

        会话还没有消息、或链上没有 AI 消息时直接返回空列表，不查询记忆表。
        """
        messages = await self._store.list_messages(self.session_id)
        if not messages:
            return []

        chain = build_message_chain(messages)
        turn_ids = extract_turn_ids(chain)
        if not turn_ids:
            return []

        self._log.debug(f"Loading memory for {len(turn_ids)} turns in chain: {turn_ids}")
        entries = await self._store.list_memory_entries(
            self.session_id,
            self.memory_node_id,
            turn_ids,
        )
        return [entry.to_view() for entry in entries]

    # ===== 写 =====

    async def _append(self, role: MessageRole, content: str, name: Optional[str]) -> MemoryEntry:
        entry = MemoryEntry(
            id=str(uuid.uuid4()),
            session_id=self.session_id,
            memory_node_id=self.memory_node_id,
            turn_id=self.execution_turn_id,
            role=role,
            content=content,
            name=name,
            created_at=utcnow(),
        )
        await self._store.append_memory_entry(entry)
        self._log.debug(
            f"Added {role.value} entry {entry.id} to memory (turn={self.execution_turn_id})"
        )
        return entry

    async def add_human_message(self, content: str) -> MemoryEntry:
        return await self._append(MessageRole.HUMAN, content, HUMAN_ENTRY_NAME)

    async def add_ai_message(self, content: str) -> MemoryEntry:
        return await self._append(MessageRole.AI, content, AI_ENTRY_NAME)

    async def add_tool_message(
        self,
        tool_call_id: str,
        tool_name: str,
        tool_input: Any,
        tool_output: Any,
    ) -> MemoryEntry:
        """四个字段作为一个整体序列化进 content"""
        content = json.dumps(
            {
                "toolCallId": tool_call_id,
                "toolName": tool_name,
                "toolInput": tool_input,
                "toolOutput": tool_output,
            },
            ensure_ascii=False,
            default=str,
        )
        return await self._append(MessageRole.TOOL, content, tool_name)

    async def clear_memory(self) -> int:
        """删除本节点在该会话的全部条目（不可恢复，不影响消息）"""
        deleted = await self._store.delete_memory_entries(self.session_id, self.memory_node_id)
        self._log.debug(f"Cleared memory for node ({deleted} entries)")
        return deleted

    async def ensure_session(self, title: Optional[str] = None) -> bool:
        return await self._bootstrap.ensure_session(
            self.session_id,
            self._owner_id,
            agent_name=self.agent_name,
            workflow_id=self.workflow_id,
            title=title,
        )


# =============================================================================
# ChatMemoryProxyProvider - 宿主调用入口
# =============================================================================

class ChatMemoryProxyProvider:
    """
    宿主引擎每次执行调用一次，返回 ChatMemoryService 或拒绝请求

    拒绝条件（在访问存储之前）：
    - 请求节点类型不在白名单
    - 无法确定 owner（例如手动执行）
    """

    def __init__(self, store: ChatMemoryStore, config: Optional[ProxyConfig] = None) -> None:
        self._store = store
        self._config = config or ProxyConfig()
        self._bootstrap = SessionBootstrap(store, provider=self._config.provider)

    def is_allowed_node(self, node_type: str) -> bool:
        return node_type in self._config.allowed_node_types

    def _validate_request(self, node: NodeDescriptor) -> None:
        if not self.is_allowed_node(node.type):
            raise ChatMemoryAuthorizationError(
                f"Chat memory is only available for memory nodes, got node type {node.type!r}"
            )

    def extract_agent_name(self, workflow: WorkflowDescriptor) -> str:
        """
        chat trigger 节点的 agentName 参数 → 工作流名称 → 配置的默认名称
        """
        trigger = workflow.find_node(self._config.chat_trigger_type)
        if trigger is not None:
            agent_name = trigger.parameters.get("agentName")
            if isinstance(agent_name, str) and agent_name.strip():
                return agent_name

        if workflow.name and workflow.name.strip():
            return workflow.name

        return self._config.name_fallback

    async def get_chat_memory_proxy(
        self,
        workflow: WorkflowDescriptor,
        node: NodeDescriptor,
        session_id: str,
        memory_node_id: str,
        turn_id: Optional[str],
        owner_id: Optional[str] = None,
    ) -> ChatMemoryService:
        self._validate_request(node)

        if not owner_id:
            raise ChatMemoryAuthorizationError(
                "Owner ID is required for chat memory. For manual executions, "
                "ensure the user context is available."
            )

        return ChatMemoryService(
            self._store,
            session_id=session_id,
            memory_node_id=memory_node_id,
            execution_turn_id=turn_id,
            owner_id=owner_id,
            workflow_id=workflow.id,
            agent_name=self.extract_agent_name(workflow),
            bootstrap=self._bootstrap,
        )
