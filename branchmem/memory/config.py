# branchmem/memory/config.py
# =========================
# Chat memory 子系统配置
# =========================

from __future__ import annotations

import os
import yaml
from pathlib import Path
from dataclasses import dataclass, field, fields
from typing import TYPE_CHECKING

from loguru import logger

from ..logging_config import setup_logging

if TYPE_CHECKING:
    from .backends.relational import SQLAlchemyChatStore


DEFAULT_MEMORY_NODE_TYPE = "branchmem.chatMemory"
DEFAULT_CHAT_TRIGGER_TYPE = "branchmem.chatTrigger"
DEFAULT_NAME_FALLBACK = "Workflow Chat"


@dataclass
class DatabaseConfig:
    """数据库配置"""
    dsn: str = "sqlite:///:memory:"
    pool_size: int = 10
    max_overflow: int = 20
    echo: bool = False


@dataclass
class ProxyConfig:
    """记忆代理（facade 工厂）配置"""
    allowed_node_types: list[str] = field(default_factory=lambda: [DEFAULT_MEMORY_NODE_TYPE])
    chat_trigger_type: str = DEFAULT_CHAT_TRIGGER_TYPE
    name_fallback: str = DEFAULT_NAME_FALLBACK
    provider: str = "workflow"


@dataclass
class LoggingConfig:
    level: str = "INFO"


@dataclass
class ChatMemoryConfig:
    """Chat memory 子系统配置"""
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    proxy: ProxyConfig = field(default_factory=ProxyConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: dict) -> ChatMemoryConfig:
        """从字典创建配置（忽略未知字段）"""
        data = _as_dict(data)
        proxy_kwargs = _filter_dataclass_kwargs(ProxyConfig, data.get("proxy"))
        allowed = proxy_kwargs.get("allowed_node_types")
        if isinstance(allowed, str):
            proxy_kwargs["allowed_node_types"] = [allowed]
        elif allowed is not None:
            proxy_kwargs["allowed_node_types"] = [str(t) for t in allowed]

        return cls(
            database=DatabaseConfig(**_filter_dataclass_kwargs(DatabaseConfig, data.get("database"))),
            proxy=ProxyConfig(**proxy_kwargs),
            logging=LoggingConfig(**_filter_dataclass_kwargs(LoggingConfig, data.get("logging"))),
        )

    @classmethod
    def from_yaml(cls, config_path: str | Path) -> ChatMemoryConfig:
        """从 YAML 文件加载配置，并替换 <ENV_VAR> 占位符"""
        config_path = Path(config_path)

        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(_replace_env_vars(data))

    def configure_logging(self, *, force: bool = False) -> None:
        """按 logging.level 安装全局 loguru sink"""
        setup_logging(level=self.logging.level, force=force)

    def build_store(self) -> SQLAlchemyChatStore:
        """按 database 配置创建 SQLAlchemy 存储并建表"""
        from .backends.relational import SQLAlchemyChatStore

        if _is_placeholder(self.database.dsn):
            raise ValueError(
                f"database.dsn is still the placeholder {self.database.dsn}; "
                f"set the {self.database.dsn[1:-1]} environment variable"
            )

        store = SQLAlchemyChatStore(
            self.database.dsn,
            pool_size=self.database.pool_size,
            max_overflow=self.database.max_overflow,
            echo=self.database.echo,
        )
        store.initialize()
        return store


def _replace_env_vars(obj):
    """
    递归替换 <ENV_VAR> 占位符为环境变量值
    """
    if isinstance(obj, str):
        if _is_placeholder(obj):
            return os.environ.get(obj[1:-1], obj)
        return obj
    elif isinstance(obj, dict):
        return {k: _replace_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_replace_env_vars(item) for item in obj]
    else:
        return obj


def _is_placeholder(value: str) -> bool:
    return value.startswith("<") and value.endswith(">")


def _as_dict(value: object) -> dict:
    return value if isinstance(value, dict) else {}


def _filter_dataclass_kwargs(dataclass_type, raw: object) -> dict:
    """过滤 dataclass 未定义的键，避免配置扩展字段导致构造失败。"""
    allowed_keys = {f.name for f in fields(dataclass_type)}
    return {k: v for k, v in _as_dict(raw).items() if k in allowed_keys}


# =============================================================================
# ChatMemoryConfigProvider
# =============================================================================

class ChatMemoryConfigProvider:
    """持有配置快照，支持强制重新加载"""

    def __init__(self, config_path: str | Path):
        self._path = Path(config_path)
        self._ref: ChatMemoryConfig = ChatMemoryConfig()
        self.force_reload()

    def snapshot(self) -> ChatMemoryConfig:
        return self._ref

    def force_reload(self) -> bool:
        """重新加载配置；失败时保留旧快照并返回 False"""
        try:
            cfg = ChatMemoryConfig.from_yaml(self._path)
        except (OSError, yaml.YAMLError, TypeError, ValueError) as e:
            logger.warning(f"Failed to load chat memory config from {self._path}: {e}")
            return False
        self._ref = cfg
        return True
