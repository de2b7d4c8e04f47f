"""
Tests for the agent loop.
"""

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from tinycode.agent.loop import AgentLoop, LoopState
from tinycode.agent.session import AgentSession
from tinycode.config import Settings
from tinycode.errors import TransportError
from tinycode.llm.base import Message, Role, TextBlock, ToolResultBlock, ToolUseBlock, check_tool_pairing
from tinycode.llm.orchestrator import ChatOrchestrator
from tinycode.llm.protocols import ProtocolKind, get_protocol
from tinycode.llm.protocols.function_call import COMPRESSED_ACK
from tinycode.tools.base import Tool, ToolParameter
from tinycode.tools.registry import ToolRegistry


def _registry(bash_output: str = "a.txt") -> ToolRegistry:
    async def fake_bash(workspace_root: Path, command: str, restart: bool = False) -> str:
        return bash_output

    registry = ToolRegistry()
    registry.register(Tool(
        name="bash",
        description="Run a command",
        parameters=[ToolParameter(name="command", param_type="string", description="Command")],
        handler=fake_bash,
    ))
    return registry


def _store() -> MagicMock:
    store = MagicMock()
    store.save = AsyncMock()
    store.create.side_effect = lambda: AgentSession()
    return store


def _loop(kind: ProtocolKind, responses, inputs, tmp_path: Path, session: AgentSession | None = None, **kwargs):
    transport = MagicMock()
    transport.name = "fake"
    transport.send = AsyncMock(side_effect=responses)
    orchestrator = ChatOrchestrator(get_protocol(kind), transport, model="test-model", system_prompt="SYS")
    loop = AgentLoop(
        orchestrator=orchestrator,
        registry=kwargs.pop("registry", None) or _registry(),
        store=kwargs.pop("store", None) or _store(),
        settings=Settings(workspace_root=tmp_path),
        read_input=AsyncMock(side_effect=inputs),
        log=MagicMock(),
        session=session,
        provider="sap",
        **kwargs,
    )
    return loop, transport


@pytest.mark.asyncio
async def test_tool_use_round_trip(tmp_path):
    """Test that a tool_use is executed, answered, and sent back to the model."""
    responses = [
        {"content": [{"type": "tool_use", "id": "t1", "name": "bash", "input": {"command": "ls"}}], "stop_reason": "tool_use"},
        {"content": [{"type": "text", "text": "There is a.txt"}], "stop_reason": "end_turn"},
    ]
    loop, transport = _loop(ProtocolKind.CONTENT_BLOCK, responses, ["list files"], tmp_path)

    assert loop.state == LoopState.AWAITING_INPUT
    assert await loop.run_iteration() is True
    assert loop.state == LoopState.TOOL_EXECUTION
    assert await loop.run_iteration() is True

    messages = loop.session.messages
    assert messages[0] == Message(role=Role.USER, content="list files")
    assert messages[1].content == [ToolUseBlock("t1", "bash", {"command": "ls"})]
    assert messages[2] == Message(role=Role.USER, content=[ToolResultBlock("t1", "a.txt")])
    assert messages[3].content == [TextBlock("There is a.txt")]
    assert check_tool_pairing(messages) == []
    assert loop.session.stop_reason == "end_turn"
    assert loop.state == LoopState.AWAITING_INPUT

    second_request = json.loads(transport.send.await_args_list[1].args[0])
    assert second_request["messages"][-1]["content"][0] == {"type": "tool_result", "tool_use_id": "t1", "content": "a.txt"}


@pytest.mark.asyncio
async def test_unknown_tool_does_not_abort(tmp_path):
    """Test that an unknown tool yields an error reply and the loop carries on."""
    responses = [
        {"choices": [{"message": {"content": None, "tool_calls": [
            {"id": "c1", "type": "function", "function": {"name": "foo", "arguments": "{}"}},
        ]}, "finish_reason": "tool_calls"}]},
        {"choices": [{"message": {"content": "Sorry, no such tool."}, "finish_reason": "stop"}]},
    ]
    loop, _ = _loop(ProtocolKind.FUNCTION_CALL, responses, ["use foo"], tmp_path)

    await loop.run_iteration()
    await loop.run_iteration()

    reply = loop.session.messages[2]
    assert reply == Message(role=Role.TOOL, content="Error: Unknown tool 'foo'", tool_call_id="c1")
    assert loop.session.messages[-1].content == "Sorry, no such tool."
    assert loop.session.stop_reason == "stop"


@pytest.mark.asyncio
async def test_transport_failure_keeps_buffer_and_asks_for_input(tmp_path):
    """Test that a failed chat call is logged, persisted as before, and recovered from."""
    store = _store()
    session = AgentSession(
        messages=[Message(role=Role.USER, content="hi"), Message(role=Role.ASSISTANT, content=[ToolUseBlock("t1", "bash", {"command": "ls"})])],
        stop_reason="tool_use",
    )
    loop, transport = _loop(
        ProtocolKind.CONTENT_BLOCK,
        [TransportError("Service unavailable", 503, "down")],
        ["what happened?"],
        tmp_path,
        session=session,
        store=store,
    )

    assert await loop.run_iteration() is True

    # The tool result was committed; the failed chat added nothing
    assert len(loop.session.messages) == 3
    assert loop.session.stop_reason == "tool_use"
    assert loop.state == LoopState.AWAITING_INPUT
    saved = store.save.await_args.args
    assert saved[0] == session.id
    assert saved[1] == loop.session.messages
    loop.log.info.assert_called()


@pytest.mark.asyncio
async def test_failure_after_input_persists_user_message(tmp_path):
    """Test that the user's line survives a failed chat call."""
    store = _store()
    loop, _ = _loop(ProtocolKind.FUNCTION_CALL, [TransportError("boom")], ["hello"], tmp_path, store=store)

    await loop.run_iteration()

    assert loop.session.messages == [Message(role=Role.USER, content="hello")]
    assert loop.session.stop_reason is None
    store.save.assert_awaited_once()


@pytest.mark.asyncio
async def test_compression_before_chat(tmp_path):
    """Test that the buffer is compressed once it reaches the threshold."""
    session = AgentSession(messages=[Message(role=Role.USER if i % 2 == 0 else Role.ASSISTANT, content=str(i)) for i in range(4)])
    responses = [
        {"choices": [{"message": {"content": "Summary"}, "finish_reason": "stop"}]},
        {"choices": [{"message": {"content": "Continuing"}, "finish_reason": "stop"}]},
    ]
    loop, transport = _loop(ProtocolKind.FUNCTION_CALL, responses, ["next"], tmp_path, session=session)

    await loop.run_iteration()

    assert transport.send.await_count == 2
    assert loop.session.messages == [
        Message(role=Role.USER, content=COMPRESSED_ACK),
        Message(role=Role.ASSISTANT, content="Continuing"),
    ]
    assert loop.session.history.startswith("Summary\n\nLast 5 Messages:\n")
    assert "User: next" in loop.session.history
    chat_request = json.loads(transport.send.await_args_list[1].args[0])
    assert "Summary" in chat_request["system"]


@pytest.mark.asyncio
async def test_compression_failure_leaves_buffer(tmp_path):
    """Test that no partial compaction is kept when summarization fails."""
    session = AgentSession(messages=[Message(role=Role.USER, content=str(i)) for i in range(4)], history="old")
    loop, transport = _loop(ProtocolKind.FUNCTION_CALL, [TransportError("boom")], ["next"], tmp_path, session=session)

    await loop.run_iteration()

    assert transport.send.await_count == 1
    assert len(loop.session.messages) == 5
    assert loop.session.history == "old"


@pytest.mark.asyncio
async def test_empty_input_and_commands_skip_chat(tmp_path):
    """Test that blank lines and handled commands never reach the model."""
    handle_command = AsyncMock(return_value=True)
    loop, transport = _loop(ProtocolKind.FUNCTION_CALL, [], ["   ", "/help"], tmp_path, handle_command=handle_command)

    assert await loop.run_iteration() is True
    assert await loop.run_iteration() is True

    handle_command.assert_awaited_once_with("/help", loop)
    transport.send.assert_not_awaited()
    assert loop.session.messages == []


@pytest.mark.asyncio
async def test_end_of_input_stops_run(tmp_path):
    """Test that run() returns once input is exhausted."""
    responses = [{"choices": [{"message": {"content": "Hi!"}, "finish_reason": "stop"}]}]
    store = _store()
    loop, _ = _loop(ProtocolKind.FUNCTION_CALL, responses, ["hello", None], tmp_path, store=store)

    await loop.run()

    assert [m.content for m in loop.session.messages] == ["hello", "Hi!"]
    assert store.save.await_count == 2


@pytest.mark.asyncio
async def test_dispatch_not_eligible_forces_input(tmp_path):
    """Test that a tool stop reason without a pending call falls back to input."""
    session = AgentSession(messages=[Message(role=Role.ASSISTANT, content=[TextBlock("odd")])], stop_reason="tool_use")
    loop, transport = _loop(ProtocolKind.CONTENT_BLOCK, [], [], tmp_path, session=session)

    assert loop.state == LoopState.TOOL_EXECUTION
    assert await loop.run_iteration() is True
    assert loop.state == LoopState.AWAITING_INPUT
    transport.send.assert_not_awaited()


def test_switch_session_replays_transcript(tmp_path):
    """Test that switching sessions replaces state and replays it."""
    loop, _ = _loop(ProtocolKind.FUNCTION_CALL, [], [], tmp_path)
    other = AgentSession(messages=[Message(role=Role.USER, content="earlier")])

    loop.switch_session(other)

    assert loop.session is other
    loop.log.user.assert_called_once_with("earlier")
