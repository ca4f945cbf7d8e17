# memory/backends/__init__.py

from .in_memory import InMemoryChatStore
from .relational import SQLAlchemyChatStore, Base

__all__ = [
    "InMemoryChatStore",
    "SQLAlchemyChatStore",
    "Base",
]
