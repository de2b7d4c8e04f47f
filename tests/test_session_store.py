"""
Tests for session persistence.
"""

import pytest
import pytest_asyncio

from tinycode.agent.session import AgentSession, SessionStore, session_title
from tinycode.llm.base import Message, Role, TextBlock, ToolResultBlock, ToolUseBlock


@pytest_asyncio.fixture
async def store(tmp_path):
    store = SessionStore(f"sqlite+aiosqlite:///{tmp_path / 'nested' / 'sessions.db'}")
    await store.init()
    yield store
    await store.close()


def test_session_title():
    """Test titles from the first plain-text user message."""
    assert session_title([Message(role=Role.USER, content="fix the failing parser tests please")]) == "fix the failing parser..."
    assert session_title([Message(role=Role.USER, content="hi")]) == "hi..."
    assert session_title([]) == "New session..."
    assert session_title([Message(role=Role.USER, content=[ToolResultBlock("t1", "x")])]) == "New session..."


def test_agent_session_defaults():
    """Test that fresh sessions get distinct ids and empty state."""
    a, b = AgentSession(), AgentSession()
    assert a.id != b.id
    assert a.messages == [] and a.history == "" and a.stop_reason is None
    assert len(a.short_id) == 8


@pytest.mark.asyncio
async def test_save_and_load_round_trip(store):
    """Test that buffers, history and stop reason survive storage."""
    messages = [
        Message(role=Role.USER, content="list the files"),
        Message(role=Role.ASSISTANT, content=[TextBlock("ok"), ToolUseBlock("t1", "bash", {"command": "ls"})]),
        Message(role=Role.USER, content=[ToolResultBlock("t1", "a.txt")]),
    ]

    await store.save("s1", messages, "summary", "tool_use", "sap", "bedrock-2023-05-31")
    data = await store.load("s1")

    assert data.title == "list the files..."
    assert data.messages == messages
    assert data.history == "summary"
    assert data.stop_reason == "tool_use"
    assert data.provider == "sap"
    assert data.model == "bedrock-2023-05-31"
    assert data.created_at is not None

    session = data.to_agent_session()
    assert session.id == "s1"
    assert session.messages == messages


@pytest.mark.asyncio
async def test_save_updates_existing(store):
    """Test that saving again updates the same row."""
    await store.save("s1", [], "", None, "copilot", "gpt-4")
    await store.save("s1", [Message(role=Role.USER, content="second try")], "h", "stop", "copilot", "gpt-4")

    sessions = await store.list_sessions()
    assert len(sessions) == 1
    assert sessions[0].title == "second try..."
    assert sessions[0].history == "h"


@pytest.mark.asyncio
async def test_list_and_load_last_order(store):
    """Test most-recently-updated ordering."""
    await store.save("older", [], "", None, "copilot", "gpt-4")
    await store.save("newer", [], "", None, "copilot", "gpt-4")
    await store.save("older", [Message(role=Role.USER, content="touched")], "", None, "copilot", "gpt-4")

    assert [s.id for s in await store.list_sessions()] == ["older", "newer"]
    assert (await store.load_last()).id == "older"


@pytest.mark.asyncio
async def test_remove(store):
    """Test removing sessions."""
    await store.save("s1", [], "", None, "copilot", "gpt-4")

    assert await store.remove("s1") is True
    assert await store.remove("s1") is False
    assert await store.load("s1") is None
    assert await store.load_last() is None


@pytest.mark.asyncio
async def test_resolve_short_id(store):
    """Test expanding an 8 character prefix."""
    session = store.create()
    await store.save(session.id, [], "", None, "copilot", "gpt-4")

    assert await store.resolve_id(session.short_id) == session.id
    assert await store.resolve_id(session.id) == session.id
    assert await store.resolve_id("ffffffff") == "ffffffff"
