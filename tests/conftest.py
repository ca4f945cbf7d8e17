# tests/conftest.py
# Pytest 配置

import asyncio
import inspect
from datetime import datetime, timedelta, timezone

import pytest

from branchmem.memory.backends.in_memory import InMemoryChatStore
from branchmem.memory.backends.relational import Base, SQLAlchemyChatStore
from branchmem.memory.config import DEFAULT_CHAT_TRIGGER_TYPE, DEFAULT_MEMORY_NODE_TYPE
from branchmem.memory.models import (
    ChatMessage,
    MessageRole,
    NodeDescriptor,
    WorkflowDescriptor,
)


BASE_TIME = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def pytest_addoption(parser):
    """兼容没有 pytest-asyncio 插件时的 ini 配置。"""
    parser.addini(
        "asyncio_mode",
        "Compatibility option when pytest-asyncio is unavailable",
        default="auto",
    )


def pytest_configure(config):
    """注册自定义 marker"""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (requires external database)"
    )
    config.addinivalue_line(
        "markers", "offline: mark test as offline test (no external services required)"
    )
    config.addinivalue_line(
        "markers", "asyncio: mark test as asyncio coroutine test"
    )


def pytest_collection_modifyitems(config, items):
    """自动标记没有 marker 的测试为 offline"""
    for item in items:
        if "integration" not in item.keywords:
            item.add_marker(pytest.mark.offline)


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem):
    """
    当 pytest-asyncio 不可用时，兜底执行 async 测试函数。
    """
    plugin_manager = pyfuncitem.config.pluginmanager
    if plugin_manager.hasplugin("pytest_asyncio") or plugin_manager.hasplugin("asyncio"):
        return None

    test_function = pyfuncitem.obj
    if not inspect.iscoroutinefunction(test_function):
        return None

    test_args = {
        arg: pyfuncitem.funcargs[arg]
        for arg in pyfuncitem._fixtureinfo.argnames
    }
    asyncio.run(test_function(**test_args))
    return True


# =============================================================================
# Fixtures
# =============================================================================

def make_message(
    message_id,
    role,
    parent=None,
    *,
    minutes=0,
    session_id="s1",
    turn_id=None,
    content="",
    seq=None,
    retry_of=None,
    revision_of=None,
):
    """按 BASE_TIME + minutes 构造消息"""
    return ChatMessage(
        id=message_id,
        session_id=session_id,
        role=MessageRole(role),
        content=content or message_id,
        parent_message_id=parent,
        created_at=BASE_TIME + timedelta(minutes=minutes),
        turn_id=turn_id,
        retry_of_message_id=retry_of,
        revision_of_message_id=revision_of,
        seq=seq,
    )


@pytest.fixture
def in_memory_store():
    return InMemoryChatStore()


@pytest.fixture
def sql_store():
    store = SQLAlchemyChatStore("sqlite:///:memory:")
    Base.metadata.drop_all(store.engine)
    store.initialize()
    yield store
    store.close()


@pytest.fixture(params=["in_memory", "sql"])
def store(request):
    """同一组行为测试跑在两种存储上"""
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture
def memory_node():
    return NodeDescriptor(name="Chat Memory", type=DEFAULT_MEMORY_NODE_TYPE)


@pytest.fixture
def workflow():
    return WorkflowDescriptor(
        id="wf-1",
        name="Support Flow",
        nodes=[
            NodeDescriptor(
                name="When chat message received",
                type=DEFAULT_CHAT_TRIGGER_TYPE,
                parameters={"agentName": "Helpdesk Bot"},
            ),
        ],
    )
