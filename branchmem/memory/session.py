# memory/session.py
# =========================
# 会话引导（Session Bootstrap）
# 幂等的 create-if-absent，并发重复创建视为“已存在”
# =========================

from __future__ import annotations

from typing import Optional

from loguru import logger

from .errors import ChatMemoryAuthorizationError, DuplicateSessionError
from .models import ChatSession, utcnow
from .stores import SessionStore


class SessionBootstrap:
    """
    确保会话记录在首次使用前存在

    多个执行可能同时为同一个新会话做 check-then-create；
    存储层的唯一约束会让后到者失败，这里把它当作“已存在”处理。
    """

    def __init__(
        self,
        store: SessionStore,
        *,
        provider: str = "workflow",
    ) -> None:
        self._store = store
        self._provider = provider

    async def ensure_session(
        self,
        session_id: str,
        owner_id: str,
        *,
        agent_name: str,
        workflow_id: Optional[str] = None,
        title: Optional[str] = None,
    ) -> bool:
        """
        Create the session if this owner does not have it yet.

        The supplied title wins over ``agent_name``.

        Returns:
            True when this call created the record, False otherwise.

        Raises:
            ChatMemoryAuthorizationError: the id is taken by another owner.
        """
        if await self._store.session_exists(session_id, owner_id):
            return False

        session = ChatSession(
            id=session_id,
            owner_id=owner_id,
            title=title or agent_name,
            last_message_at=utcnow(),
            workflow_id=workflow_id,
            agent_id=None,
            agent_name=agent_name,
            provider=self._provider,
            model=None,
            credential_id=None,
            tools=[],
        )
        try:
            await self._store.create_session(session)
        except DuplicateSessionError as e:
            # 同 id 的记录属于其他 owner 时不能当作“已存在”
            if not await self._store.session_exists(session_id, owner_id):
                logger.bind(session_id=session_id).warning(
                    f"Session id already held by another owner (requested by {owner_id})"
                )
                raise ChatMemoryAuthorizationError(
                    f"Chat session {session_id} belongs to a different owner"
                ) from e
            logger.debug(f"Session {session_id} created concurrently, treating as existing")
            return False

        logger.bind(session_id=session_id).debug(
            f"Created chat session (owner={owner_id}, title={session.title!r}, "
            f"workflow={workflow_id}, agent={agent_name!r})"
        )
        return True
