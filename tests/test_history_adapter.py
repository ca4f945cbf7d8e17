# tests/test_history_adapter.py
# =========================
# 条目编解码适配器 / ChatMemoryHistory 测试
# =========================

import json
from datetime import datetime, timezone

from conftest import make_message
from branchmem.memory.adapter import (
    AIRecord,
    ChatMemoryHistory,
    HumanRecord,
    SystemRecord,
    ToolCall,
    ToolRecord,
    entry_to_record,
)
from branchmem.memory.backends.in_memory import InMemoryChatStore
from branchmem.memory.models import ChatMemoryEntry, MessageRole
from branchmem.memory.service import ChatMemoryService


NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)


def _entry(role, content, name=None):
    return ChatMemoryEntry(id="e1", role=role, content=content, name=name, created_at=NOW)


async def _history_with_chain(store, turn_id="T1"):
    await store.add_messages([
        make_message("h1", "human", minutes=0),
        make_message("a1", "ai", "h1", minutes=1, turn_id=turn_id),
    ])
    service = ChatMemoryService(
        store,
        session_id="s1",
        memory_node_id="node-a",
        execution_turn_id=turn_id,
        owner_id="user-1",
    )
    return ChatMemoryHistory(service), service


class TestReadDirection:
    """entry_to_record 测试"""

    def test_human_payload(self):
        record = entry_to_record(_entry(MessageRole.HUMAN, '{"content": "hi"}', "User"))
        assert record == HumanRecord(content="hi", name="User")

    def test_human_non_string_content_is_json_encoded(self):
        record = entry_to_record(_entry(MessageRole.HUMAN, '{"content": [{"type": "text"}]}'))
        assert record.content == '[{"type": "text"}]'

    def test_ai_payload_with_tool_calls(self):
        payload = {
            "content": "let me check",
            "toolCalls": [{"id": "c1", "name": "search", "args": {"q": "x"}, "type": "tool_call"}],
        }
        record = entry_to_record(_entry(MessageRole.AI, json.dumps(payload), "AI"))

        assert isinstance(record, AIRecord)
        assert record.content == "let me check"
        assert record.tool_calls == [ToolCall(id="c1", name="search", args={"q": "x"})]

    def test_legacy_plain_text_degrades_to_raw(self):
        human = entry_to_record(_entry(MessageRole.HUMAN, "plain hello"))
        ai = entry_to_record(_entry(MessageRole.AI, "plain answer"))

        assert human.content == "plain hello"
        assert ai.content == "plain answer"
        assert ai.tool_calls == []

    def test_json_without_expected_shape_degrades_to_raw(self):
        record = entry_to_record(_entry(MessageRole.HUMAN, "42"))
        assert record.content == "42"

    def test_tool_payload(self):
        payload = {"toolCallId": "c1", "toolName": "calc", "toolInput": {"x": 1}, "toolOutput": {"y": 2}}
        record = entry_to_record(_entry(MessageRole.TOOL, json.dumps(payload), "calc"))

        assert isinstance(record, ToolRecord)
        assert record.tool_call_id == "c1"
        assert record.name == "calc"
        assert json.loads(record.content) == {"y": 2}

    def test_malformed_tool_payload(self):
        record = entry_to_record(_entry(MessageRole.TOOL, "not json"))

        assert record.tool_call_id == "unknown"
        assert record.name == "unknown"
        assert record.content == '"not json"'

    def test_system_and_unknown_roles(self):
        assert entry_to_record(_entry(MessageRole.SYSTEM, "be nice")) == SystemRecord(content="be nice")
        assert entry_to_record(_entry("function", "raw")) == SystemRecord(content="raw")


class TestChatMemoryHistory:
    """读写往返测试"""

    async def test_ai_tool_calls_round_trip(self):
        store = InMemoryChatStore()
        history, _ = await _history_with_chain(store)
        calls = [
            ToolCall(id="c1", name="search", args={"q": "weather"}),
            ToolCall(id="c2", name="calc", args={"expr": "1+1"}),
        ]

        await history.add_message(AIRecord(content="checking", tool_calls=calls))
        messages = await history.get_messages()

        assert messages == [AIRecord(content="checking", name="AI", tool_calls=calls)]

    async def test_conversation_round_trip(self):
        store = InMemoryChatStore()
        history, _ = await _history_with_chain(store)

        await history.add_messages([
            HumanRecord(content="what is 1+1?"),
            AIRecord(content="", tool_calls=[ToolCall(id="c1", name="calc", args={"expr": "1+1"})]),
            ToolRecord(content="2", tool_call_id="c1", name="calc"),
            AIRecord(content="It is 2."),
        ])
        messages = await history.get_messages()

        assert [type(m) for m in messages] == [HumanRecord, AIRecord, ToolRecord, AIRecord]
        assert messages[0].content == "what is 1+1?"
        assert messages[1].tool_calls[0].id == "c1"
        assert messages[2].tool_call_id == "c1"
        assert json.loads(messages[2].content) == "2"
        assert messages[3].content == "It is 2."

    async def test_tool_input_is_not_available_from_record(self):
        store = InMemoryChatStore()
        history, service = await _history_with_chain(store)

        await history.add_message(ToolRecord(content="ok", tool_call_id="c9", name=None))
        [entry] = await service.get_memory()

        payload = json.loads(entry.content)
        assert payload["toolInput"] == {}
        assert payload["toolName"] == "unknown"
        assert entry.name == "unknown"

    async def test_system_records_are_not_persisted(self):
        store = InMemoryChatStore()
        history, _ = await _history_with_chain(store)

        await history.add_message(SystemRecord(content="you are helpful"))

        assert await history.get_messages() == []
        assert store.count_memory_entries("s1") == 0

    async def test_convenience_writers_and_clear(self):
        store = InMemoryChatStore()
        history, _ = await _history_with_chain(store)

        await history.add_user_message("hi")
        await history.add_ai_message("hello")
        assert [m.content for m in await history.get_messages()] == ["hi", "hello"]

        await history.clear()
        assert await history.get_messages() == []
