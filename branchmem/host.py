# branchmem/host.py
# =========================
# 宿主引擎辅助函数
# 把 proxy provider 绑定到一次执行的 (workflow, node, mode, user)
# =========================

from __future__ import annotations

from typing import Awaitable, Callable, Optional

from .memory.models import NodeDescriptor, WorkflowDescriptor
from .memory.service import ChatMemoryProxyProvider, ChatMemoryService

MANUAL_MODE = "manual"

GetChatMemoryProxy = Callable[[str, str, Optional[str]], Awaitable[ChatMemoryService]]


def get_chat_memory_helpers(
    provider: Optional[ChatMemoryProxyProvider],
    workflow: WorkflowDescriptor,
    node: NodeDescriptor,
    mode: str,
    user_id: Optional[str],
) -> dict[str, GetChatMemoryProxy]:
    """
    返回节点执行上下文可用的 chat memory 辅助函数

    手动执行时不传 owner（provider 会拒绝）；未配置 provider 时返回空 dict。
    """
    if provider is None:
        return {}

    owner_id = None if mode == MANUAL_MODE else user_id

    async def get_chat_memory_proxy(
        session_id: str,
        memory_node_id: str,
        turn_id: Optional[str],
    ) -> ChatMemoryService:
        return await provider.get_chat_memory_proxy(
            workflow,
            node,
            session_id,
            memory_node_id,
            turn_id,
            owner_id,
        )

    return {"get_chat_memory_proxy": get_chat_memory_proxy}
