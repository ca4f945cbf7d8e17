from __future__ import annotations

import logging
import sys
from typing import Any, Optional, TextIO

from loguru import logger


_configured = False

_DEFAULT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
    "{extra[context]}"
)


class _InterceptHandler(logging.Handler):
    """Forward standard logging records (SQLAlchemy etc.) into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _render_context(record: dict[str, Any]) -> None:
    """Patch bound ids (session_id, memory_node_id, ...) into a printable suffix."""
    extra = record["extra"]
    pairs = [f"{k}={v}" for k, v in extra.items() if k != "context"]
    extra["context"] = f" [{' '.join(pairs)}]" if pairs else ""


def setup_logging(
    *,
    level: str = "INFO",
    force: bool = False,
    sink: Optional[TextIO] = None,
    fmt: Optional[str] = None,
) -> None:
    """
    Configure a single global loguru sink for branchmem.

    Parameters:
    - level: minimum level written to the sink.
    - force: reconfigure even if already configured.
    - sink: stream to write to, stderr by default.
    - fmt: optional custom format. The default appends values bound with
      ``logger.bind(...)`` such as session and memory node ids.
    """
    global _configured

    if _configured and not force:
        return

    logger.remove()
    logger.configure(extra={"context": ""}, patcher=_render_context)

    minimum = logger.level(level.upper()).no

    def _filter(record) -> bool:
        return record["level"].no >= minimum

    logger.add(
        sink or sys.stderr,
        level=level.upper(),
        colorize=sink is None,
        filter=_filter,
        format=fmt or _DEFAULT_FORMAT,
    )

    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)
    _configured = True
