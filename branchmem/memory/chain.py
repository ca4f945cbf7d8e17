# memory/chain.py
# =========================
# 消息链构建（Message Chain Builder）+ Turn ID 提取
# 把消息树折叠成当前有效的线性对话，纯函数、无 I/O
# =========================

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence

from loguru import logger

from .errors import MessageCycleError, MissingRootError, MultipleRootsError
from .models import ChatMessage, MessageRole


def _recency_key(message: ChatMessage) -> tuple[datetime, int, str]:
    """
    兄弟节点的排序键：created_at → 插入序号 → id
    Sort key among siblings; the greatest key is the active child.
    """
    created_at = message.created_at
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    seq = -1 if message.seq is None else message.seq
    return (created_at, seq, message.id)


def _index_children(messages: Iterable[ChatMessage]) -> dict[Optional[str], list[ChatMessage]]:
    children: dict[Optional[str], list[ChatMessage]] = defaultdict(list)
    for message in messages:
        children[message.parent_message_id].append(message)
    return children


def _check_roots(roots: Sequence[ChatMessage]) -> None:
    """
    根节点可以被编辑（编辑后的新根同样 parent 为空），
    但未标记 supersedes 的“独立根”只能有一个。
    """
    root_ids = {m.id for m in roots}
    independent = [m.id for m in roots if m.supersedes not in root_ids]
    if len(independent) > 1:
        raise MultipleRootsError(sorted(independent))


def select_active_child(siblings: Sequence[ChatMessage]) -> ChatMessage:
    """同一 parent 下最新创建的消息取代之前的所有兄弟"""
    return max(siblings, key=_recency_key)


def build_message_chain(messages: Iterable[ChatMessage]) -> list[ChatMessage]:
    """
    构建当前有效的消息链
    Build the active root-to-leaf chain from an unordered set of messages.

    从根开始，每一层选择 created_at 最新的子消息，直到叶子。
    被替代的兄弟及其整个子树都不可达。

    Raises:
        MissingRootError: 消息非空但没有 parent 为空的根
        MultipleRootsError: 存在多个互不替代的根
        MessageCycleError: 遍历过程中重复访问同一消息
    """
    messages = list(messages)
    if not messages:
        return []

    children = _index_children(messages)
    roots = children.get(None, [])
    if not roots:
        logger.error(f"No root message among {len(messages)} messages")
        raise MissingRootError(f"no root message found among {len(messages)} messages")
    try:
        _check_roots(roots)
    except MultipleRootsError as e:
        logger.error(f"Invalid message tree: {e}")
        raise

    chain: list[ChatMessage] = []
    visited: set[str] = set()
    current = select_active_child(roots)
    while current is not None:
        if current.id in visited:
            logger.error(f"Cycle in message tree at {current.id}")
            raise MessageCycleError(current.id)
        visited.add(current.id)
        chain.append(current)

        next_level = children.get(current.id)
        current = select_active_child(next_level) if next_level else None

    if len(chain) < len(messages):
        logger.debug(f"Active chain keeps {len(chain)}/{len(messages)} messages")
    return chain


def extract_turn_ids(chain: Iterable[ChatMessage]) -> list[str]:
    """
    从 active chain 中提取 AI 消息的 turn id（保持顺序、去重）

    链中没有 AI 消息时返回空列表，调用方应视为“没有历史记忆”。
    """
    seen: set[str] = set()
    turn_ids: list[str] = []
    for message in chain:
        if message.role != MessageRole.AI or not message.turn_id:
            continue
        if message.turn_id in seen:
            continue
        seen.add(message.turn_id)
        turn_ids.append(message.turn_id)
    return turn_ids
