# memory/stores.py
# =========================
# 存储协议接口（Store Protocol Interfaces）
# 定义消息、记忆条目、会话的异步存储协议
# =========================

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable

from .models import ChatMessage, ChatSession, MemoryEntry


# =============================================================================
# MessageStore - 消息存储协议
# =============================================================================

@runtime_checkable
class MessageStore(Protocol):
    """
    消息存储协议（Message Store Protocol）

    只读：消息由宿主写入，记忆子系统只负责读取整棵树
    """

    async def list_messages(self, session_id: str) -> list[ChatMessage]:
        """
        列出会话的全部消息（无序，包含被替代的分支）
        List every stored message of a session, superseded branches included

        Args:
            session_id: 会话 ID

        Returns:
            消息列表
        """
        ...


# =============================================================================
# MemoryEntryStore - 记忆条目存储协议
# =============================================================================

@runtime_checkable
class MemoryEntryStore(Protocol):
    """
    记忆条目存储协议（Memory Entry Store Protocol）

    按 (session, memory node, turn) 分区的追加式日志
    Append-only log partitioned per (session, memory node, turn)
    """

    async def list_memory_entries(
        self,
        session_id: str,
        memory_node_id: str,
        turn_ids: Sequence[str],
    ) -> list[MemoryEntry]:
        """
        查询指定 turn 集合内的记忆条目，按创建时间升序
        List entries whose turn id is in ``turn_ids``, oldest first

        Args:
            session_id: 会话 ID
            memory_node_id: 记忆节点 ID
            turn_ids: turn id 集合

        Returns:
            记忆条目列表
        """
        ...

    async def append_memory_entry(self, entry: MemoryEntry) -> None:
        """
        追加一条记忆条目
        Append one immutable entry

        Args:
            entry: 记忆条目
        """
        ...

    async def delete_memory_entries(self, session_id: str, memory_node_id: str) -> int:
        """
        删除 (session, memory node) 下的全部条目
        Delete every entry of (session, memory node)

        Returns:
            删除的记录数
        """
        ...


# =============================================================================
# SessionStore - 会话存储协议
# =============================================================================

@runtime_checkable
class SessionStore(Protocol):
    """
    会话存储协议（Session Store Protocol）

    create_session 必须在存储层保证 id 唯一，重复创建抛出 DuplicateSessionError
    """

    async def session_exists(self, session_id: str, owner_id: str) -> bool:
        """
        检查 owner 名下是否已有该会话
        Check whether the owner already has this session
        """
        ...

    async def create_session(self, session: ChatSession) -> None:
        """
        创建会话记录
        Create a session record

        Raises:
            DuplicateSessionError: 同 id 的会话已存在
        """
        ...


@runtime_checkable
class ChatMemoryStore(MessageStore, MemoryEntryStore, SessionStore, Protocol):
    """记忆子系统依赖的完整存储接口"""
