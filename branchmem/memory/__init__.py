# memory/__init__.py
# =========================
# 分支对话记忆子系统（Branching Chat Memory）
# 消息树 → active chain → turn ids → 每个 memory node 独立的记忆条目
# =========================

from __future__ import annotations

from .models import (
    ChatMessage,
    ChatMemoryEntry,
    ChatSession,
    MemoryEntry,
    MessageRole,
    NodeDescriptor,
    WorkflowDescriptor,
    SerializableMixin,
)
from .chain import build_message_chain, extract_turn_ids
from .errors import (
    ChatMemoryError,
    ChatMemoryAuthorizationError,
    MessageTreeError,
    MissingRootError,
    MultipleRootsError,
    MessageCycleError,
    DuplicateSessionError,
    StorageError,
)
from .stores import ChatMemoryStore, MessageStore, MemoryEntryStore, SessionStore
from .session import SessionBootstrap
from .service import ChatMemoryService, ChatMemoryProxyProvider
from .adapter import (
    ChatMemoryHistory,
    HumanRecord,
    AIRecord,
    SystemRecord,
    ToolRecord,
    ToolCall,
    entry_to_record,
)
from .config import ChatMemoryConfig, ChatMemoryConfigProvider
from .backends import InMemoryChatStore, SQLAlchemyChatStore

__all__ = [
    # Models
    "ChatMessage",
    "ChatMemoryEntry",
    "ChatSession",
    "MemoryEntry",
    "MessageRole",
    "NodeDescriptor",
    "WorkflowDescriptor",
    "SerializableMixin",
    # Chain
    "build_message_chain",
    "extract_turn_ids",
    # Errors
    "ChatMemoryError",
    "ChatMemoryAuthorizationError",
    "MessageTreeError",
    "MissingRootError",
    "MultipleRootsError",
    "MessageCycleError",
    "DuplicateSessionError",
    "StorageError",
    # Stores
    "ChatMemoryStore",
    "MessageStore",
    "MemoryEntryStore",
    "SessionStore",
    "InMemoryChatStore",
    "SQLAlchemyChatStore",
    # Service
    "SessionBootstrap",
    "ChatMemoryService",
    "ChatMemoryProxyProvider",
    # Adapter
    "ChatMemoryHistory",
    "HumanRecord",
    "AIRecord",
    "SystemRecord",
    "ToolRecord",
    "ToolCall",
    "entry_to_record",
    # Config
    "ChatMemoryConfig",
    "ChatMemoryConfigProvider",
]
