# memory/backends/in_memory.py
# =========================
# 内存存储（测试 / 临时使用）
# =========================

from __future__ import annotations

import asyncio
import dataclasses
import itertools
from typing import Iterable, Sequence

from ..errors import DuplicateSessionError
from ..models import ChatMessage, ChatSession, MemoryEntry


class InMemoryChatStore:
    """
    基于 dict 的 ChatMemoryStore 实现

    每条记录在写入时分配递增的 seq，作为时间戳相同时的插入顺序。
    """

    def __init__(self) -> None:
        self._seq = itertools.count(1)
        self._messages: dict[str, ChatMessage] = {}
        self._entries: dict[str, MemoryEntry] = {}
        self._sessions: dict[str, ChatSession] = {}
        self._session_lock = asyncio.Lock()

    # ===== 消息（宿主侧写入）=====

    async def add_message(self, message: ChatMessage) -> ChatMessage:
        if message.id in self._messages:
            raise ValueError(f"message already exists: {message.id}")
        stored = dataclasses.replace(message, seq=next(self._seq))
        self._messages[stored.id] = stored
        return stored

    async def add_messages(self, messages: Iterable[ChatMessage]) -> list[ChatMessage]:
        return [await self.add_message(m) for m in messages]

    async def list_messages(self, session_id: str) -> list[ChatMessage]:
        return [m for m in self._messages.values() if m.session_id == session_id]

    # ===== 记忆条目 =====

    async def list_memory_entries(
        self,
        session_id: str,
        memory_node_id: str,
        turn_ids: Sequence[str],
    ) -> list[MemoryEntry]:
        wanted = set(turn_ids)
        matched = [
            e for e in self._entries.values()
            if e.session_id == session_id
            and e.memory_node_id == memory_node_id
            and e.turn_id in wanted
        ]
        matched.sort(key=lambda e: (e.created_at, e.seq or 0))
        return matched

    async def append_memory_entry(self, entry: MemoryEntry) -> None:
        if entry.id in self._entries:
            raise ValueError(f"memory entry already exists: {entry.id}")
        self._entries[entry.id] = dataclasses.replace(entry, seq=next(self._seq))

    async def delete_memory_entries(self, session_id: str, memory_node_id: str) -> int:
        doomed = [
            key for key, e in self._entries.items()
            if e.session_id == session_id and e.memory_node_id == memory_node_id
        ]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def count_memory_entries(self, session_id: str, memory_node_id: str | None = None) -> int:
        """统计条目数（包括不在 active chain 上的）"""
        return sum(
            1 for e in self._entries.values()
            if e.session_id == session_id
            and (memory_node_id is None or e.memory_node_id == memory_node_id)
        )

    # ===== 会话 =====

    async def session_exists(self, session_id: str, owner_id: str) -> bool:
        session = self._sessions.get(session_id)
        return session is not None and session.owner_id == owner_id

    async def create_session(self, session: ChatSession) -> None:
        async with self._session_lock:
            if session.id in self._sessions:
                raise DuplicateSessionError(session.id)
            self._sessions[session.id] = session

    async def get_session(self, session_id: str) -> ChatSession | None:
        return self._sessions.get(session_id)
