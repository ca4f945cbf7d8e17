"""Chat memory 错误类型 / error taxonomy."""

from __future__ import annotations


class ChatMemoryError(Exception):
    """Chat memory 领域错误基类。"""


class ChatMemoryAuthorizationError(ChatMemoryError):
    """请求节点不在白名单内，或无法确定 owner。"""


class MessageTreeError(ChatMemoryError):
    """消息树结构损坏（无根、多根、环）。"""


class MissingRootError(MessageTreeError):
    """消息非空但找不到 parent 为空的根消息。"""


class MultipleRootsError(MessageTreeError):
    """存在多个 parent 为空的根消息。"""

    def __init__(self, root_ids: list[str]) -> None:
        super().__init__(f"message tree has {len(root_ids)} roots: {', '.join(root_ids)}")
        self.root_ids = root_ids


class MessageCycleError(MessageTreeError):
    """沿 active chain 遍历时遇到已访问过的消息。"""

    def __init__(self, message_id: str) -> None:
        super().__init__(f"cycle detected in message tree at message {message_id}")
        self.message_id = message_id


class DuplicateSessionError(ChatMemoryError):
    """Store 层唯一约束：同一 session id 重复创建。"""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"chat session already exists: {session_id}")
        self.session_id = session_id


class StorageError(ChatMemoryError):
    """后端驱动异常的包装（原始异常保存在 __cause__）。"""
