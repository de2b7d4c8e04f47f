"""
Function-call protocol (OpenAI chat completions style).

A round trip may yield a text entry and a separate entry carrying every
requested function call; each call is answered by its own tool-role message.
Compression is coarse: the whole buffer is summarized and replaced by a single
acknowledgement, with the last few messages rendered into the new history.
"""

import json
from pathlib import Path
from typing import Any, Callable

from ...transcript import TranscriptLog
from ..base import ChatResult, CompactionState, Message, Role, ToolCall
from .common import MAX_TOKENS, compression_system_text, summary_instruction, system_text

TOOL_CALLS_STOP_REASON = "tool_calls"

COMPRESSED_ACK = (
    'Chat history compressed. Please check the history and continue with your task. '
    'No need to say "Understood".'
)

CONTEXT_MESSAGES = 5
CONTEXT_SEPARATOR = "\n===========\n"


def _wire(message: Message) -> dict[str, Any]:
    data = message.to_dict()
    if message.role == Role.ASSISTANT and message.tool_calls and not message.content:
        data["content"] = None
    return data


def format_request(
    messages: list[Message],
    tools: list[dict[str, Any]] | None,
    system: str,
    history: str,
    model: str,
    max_tokens: int = MAX_TOKENS,
) -> str:
    body: dict[str, Any] = {
        "messages": [_wire(m) for m in messages],
        "system": system_text(system, history),
        "max_tokens": max_tokens,
        "model": model,
    }
    if tools:
        body["tools"] = tools
    return json.dumps(body)


def parse_response(raw: dict[str, Any]) -> ChatResult:
    messages: list[Message] = []
    finish_reasons: list[str | None] = []

    for choice in raw.get("choices") or []:
        message = choice.get("message") or {}
        finish_reasons.append(choice.get("finish_reason"))

        if message.get("content"):
            messages.append(Message(role=Role.ASSISTANT, content=message["content"]))

        tool_calls = message.get("tool_calls") or []
        if tool_calls:
            messages.append(Message(
                role=Role.ASSISTANT,
                content=None,
                tool_calls=[ToolCall.from_dict(tc) for tc in tool_calls],
            ))

    # Some gateways split text and tool calls across choices; any tool_calls finish wins.
    if TOOL_CALLS_STOP_REASON in finish_reasons:
        stop_reason = TOOL_CALLS_STOP_REASON
    else:
        stop_reason = finish_reasons[0] if finish_reasons else None

    return ChatResult(messages=messages, stop_reason=stop_reason)


def needs_tool_processing(stop_reason: str | None) -> bool:
    return stop_reason == TOOL_CALLS_STOP_REASON


def extract_tool_calls(message: Message) -> list[ToolCall]:
    if message.role != Role.ASSISTANT:
        return []
    return list(message.tool_calls or [])


async def dispatch_tools(
    messages: list[Message],
    registry,
    workspace_root: Path,
    log: TranscriptLog,
) -> list[Message] | None:
    """Answer every function call of the last assistant entry, in order."""
    if not messages:
        return None
    calls = extract_tool_calls(messages[-1])
    if not calls:
        return None

    replies: list[Message] = []
    for call in calls:
        try:
            arguments = call.parse_arguments()
        except ValueError as e:
            log.tool_use(call.name, None)
            content = f"Error: Invalid arguments for tool '{call.name}': {e}"
        else:
            log.tool_use(call.name, arguments)
            content = await registry.execute(call.name, arguments, workspace_root)

        log.tool_result(call.name, content)
        replies.append(Message(role=Role.TOOL, content=content, tool_call_id=call.id))

    return replies


def _safe_arguments(call: ToolCall) -> dict[str, Any] | None:
    try:
        return call.parse_arguments()
    except ValueError:
        return None


def walk_messages(
    messages: list[Message],
    on_user: Callable[[str], None],
    on_assistant: Callable[[str], None],
    on_tool_use: Callable[[ToolCall], None],
    on_tool_result: Callable[[ToolCall, str], None],
    known_calls: dict[str, ToolCall] | None = None,
) -> None:
    """Visit messages in order, pairing each tool reply with the call it answers."""
    calls: dict[str, ToolCall] = dict(known_calls or {})
    for message in messages:
        if message.role == Role.USER and isinstance(message.content, str):
            on_user(message.content)
        elif message.role == Role.ASSISTANT:
            for call in message.tool_calls or []:
                calls[call.id] = call
            if isinstance(message.content, str) and message.content:
                on_assistant(message.content)
        elif message.role == Role.TOOL:
            call = calls.get(message.tool_call_id or "")
            if call is None:
                continue
            on_tool_use(call)
            on_tool_result(call, message.text)


def log_messages(messages: list[Message], log: TranscriptLog) -> None:
    walk_messages(
        messages,
        on_user=log.user,
        on_assistant=log.assistant,
        on_tool_use=lambda call: log.tool_use(call.name, _safe_arguments(call)),
        on_tool_result=lambda call, content: log.tool_result(call.name, content),
    )


def plan_compression(messages: list[Message]) -> CompactionState:
    if not messages:
        return CompactionState(messages_to_compress=[], post_compression_messages=[])
    return CompactionState(
        messages_to_compress=list(messages),
        post_compression_messages=[Message(role=Role.USER, content=COMPRESSED_ACK)],
    )


def format_compression_request(
    messages: list[Message],
    history: str,
    model: str,
    max_tokens: int = MAX_TOKENS,
) -> str:
    instruction = Message(role=Role.USER, content=summary_instruction(keep_task=True))
    return json.dumps({
        "model": model,
        "max_tokens": max_tokens,
        "system": compression_system_text(history),
        "messages": [_wire(m) for m in [*messages, instruction]],
    })


def render_recent(messages: list[Message], count: int = CONTEXT_MESSAGES) -> str:
    """Render the last ``count`` messages as role-prefixed lines."""
    known_calls = {
        call.id: call
        for message in messages[:-count]
        for call in message.tool_calls or []
    }
    lines: list[str] = []
    walk_messages(
        messages[-count:],
        on_user=lambda content: lines.append(f"User: {content}"),
        on_assistant=lambda content: lines.append(f"Assistant: {content}"),
        on_tool_use=lambda call: lines.append(f"Tool Use: {call.name}"),
        on_tool_result=lambda call, content: lines.append(f"Tool Result: {call.name} - {content}"),
        known_calls=known_calls,
    )
    return CONTEXT_SEPARATOR.join(lines)


def parse_compression_response(messages: list[Message], raw: dict[str, Any]) -> str:
    choices = raw.get("choices") or []
    summary = ""
    if choices:
        summary = (choices[0].get("message") or {}).get("content") or ""
    return f"{summary}\n\nLast {CONTEXT_MESSAGES} Messages:\n{render_recent(messages)}"
