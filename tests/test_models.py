# tests/test_models.py
# 测试 memory 模型的序列化/反序列化

from __future__ import annotations

import pytest

from conftest import BASE_TIME, make_message
from branchmem.memory.models import (
    ChatMessage,
    ChatSession,
    MemoryEntry,
    MessageRole,
    WorkflowDescriptor,
    NodeDescriptor,
)


def test_chat_message_round_trip():
    message = make_message("a2", "ai", "h1", minutes=3, turn_id="T2", retry_of="a1", seq=7)

    data = message.to_dict()
    assert data["role"] == "ai"
    assert data["created_at"] == "2024-05-01T12:03:00+00:00"
    assert data["retry_of_message_id"] == "a1"

    restored = ChatMessage.from_json(message.to_json())
    assert restored == message
    assert restored.role is MessageRole.AI
    assert restored.supersedes == "a1"


def test_from_dict_ignores_unknown_keys_and_assumes_utc():
    restored = MemoryEntry.from_dict(
        {
            "id": "e1",
            "session_id": "s1",
            "memory_node_id": "node-a",
            "role": "tool",
            "content": "{}",
            "created_at": "2024-05-01T12:00:00",
            "legacy_column": "ignored",
        }
    )

    assert restored.role is MessageRole.TOOL
    assert restored.created_at == BASE_TIME
    assert restored.turn_id is None


def test_unknown_role_is_preserved():
    entry = MemoryEntry(id="e1", session_id="s1", memory_node_id="n", role="function", content="x")
    assert entry.role == "function"
    assert entry.to_view().role == "function"


def test_session_requires_owner():
    with pytest.raises(ValueError):
        ChatSession(id="s1", owner_id="", title="t")

    session = ChatSession(id="s1", owner_id="u1", title="t", tools=["search"])
    assert ChatSession.from_dict(session.to_dict()) == session


def test_workflow_find_node():
    trigger = NodeDescriptor(name="Trigger", type="x.chatTrigger", parameters={"agentName": "Bot"})
    workflow = WorkflowDescriptor(id="wf", name="Flow", nodes=[NodeDescriptor("Memory", "x.memory"), trigger])

    assert workflow.find_node("x.chatTrigger") is trigger
    assert workflow.find_node("missing") is None
