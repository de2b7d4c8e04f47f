"""
Content-block protocol (Anthropic messages style).

Assistant turns are lists of text and tool_use blocks; tool results travel
back as user messages holding a tool_result block. One tool call is handled
per round trip. Compression summarizes a prefix of the buffer that ends on a
safe boundary and keeps the rest verbatim.
"""

import json
from pathlib import Path
from typing import Any

import structlog

from ...transcript import TranscriptLog
from ..base import (
    ChatResult,
    CompactionState,
    Message,
    Role,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
    block_from_dict,
    is_text_only,
    is_tool_result_bearing,
    tool_use_blocks,
)
from .common import MAX_TOKENS, compression_system_text, summary_instruction, system_text

logger = structlog.get_logger()

TOOL_USE_STOP_REASON = "tool_use"


def _wire(message: Message) -> dict[str, Any]:
    if isinstance(message.content, list):
        content: Any = [block.to_dict() for block in message.content]
    else:
        content = message.content or ""
    return {"role": message.role.value, "content": content}


def format_request(
    messages: list[Message],
    tools: list[dict[str, Any]] | None,
    system: str,
    history: str,
    model: str,
    max_tokens: int = MAX_TOKENS,
) -> str:
    body: dict[str, Any] = {
        "anthropic_version": model,
        "system": system_text(system, history),
        "max_tokens": max_tokens,
        "messages": [_wire(m) for m in messages],
    }
    if tools:
        body["tools"] = tools
    return json.dumps(body)


def parse_response(raw: dict[str, Any]) -> ChatResult:
    content = raw.get("content") or []
    if isinstance(content, str):
        blocks = [TextBlock(text=content)]
    else:
        blocks = []
        for item in content:
            block = block_from_dict(item) if isinstance(item, dict) else None
            if block is None:
                logger.debug("Dropping unsupported content block", block_type=item.get("type") if isinstance(item, dict) else None)
                continue
            blocks.append(block)

    return ChatResult(
        messages=[Message(role=Role.ASSISTANT, content=blocks)],
        stop_reason=raw.get("stop_reason"),
    )


def needs_tool_processing(stop_reason: str | None) -> bool:
    return stop_reason == TOOL_USE_STOP_REASON


def extract_tool_call(message: Message) -> ToolUseBlock | None:
    """First tool_use block of an assistant message."""
    if message.role != Role.ASSISTANT:
        return None
    blocks = tool_use_blocks(message)
    return blocks[0] if blocks else None


def extract_tool_calls(message: Message) -> list[ToolUseBlock]:
    call = extract_tool_call(message)
    return [call] if call else []


async def dispatch_tools(
    messages: list[Message],
    registry,
    workspace_root: Path,
    log: TranscriptLog,
) -> list[Message] | None:
    """Run the pending tool_use of the last assistant message.

    Returns None when the buffer does not end with a tool request.
    """
    if not messages or messages[-1].role != Role.ASSISTANT:
        return None
    call = extract_tool_call(messages[-1])
    if call is None:
        return None

    content = await registry.execute(call.name, call.input, workspace_root)
    log.tool_result(call.name, content)

    return [Message(role=Role.USER, content=[ToolResultBlock(tool_use_id=call.id, content=content)])]


def log_messages(messages: list[Message], log: TranscriptLog) -> None:
    tool_names: dict[str, str] = {}
    for message in messages:
        if message.role == Role.USER:
            if isinstance(message.content, str):
                log.user(message.content)
                continue
            for block in message.content or []:
                if isinstance(block, ToolResultBlock):
                    log.tool_result(tool_names.get(block.tool_use_id, "unknown"), block.content)
                elif isinstance(block, TextBlock):
                    log.user(block.text)
        elif message.role == Role.ASSISTANT:
            if isinstance(message.content, str):
                log.assistant(message.content)
                continue
            for block in message.content or []:
                if isinstance(block, TextBlock):
                    log.assistant(block.text)
                elif isinstance(block, ToolUseBlock):
                    tool_names[block.id] = block.name
                    log.tool_use(block.name, block.input)


def find_nearest_index(messages: list[Message], kind: str) -> int:
    """Scan backward from the middle of the buffer for a safe cut point.

    kind "text": an assistant message with text only.
    kind "tool_result": a user message carrying a tool result.
    Returns -1 when there is none at or before the midpoint.
    """
    for i in range(len(messages) // 2, -1, -1):
        if i >= len(messages):
            continue
        message = messages[i]
        if kind == "text" and message.role == Role.ASSISTANT and is_text_only(message):
            return i
        if kind == "tool_result" and message.role == Role.USER and is_tool_result_bearing(message):
            return i
    return -1


def plan_compression(messages: list[Message]) -> CompactionState:
    index = max(find_nearest_index(messages, "tool_result"), find_nearest_index(messages, "text"))
    if index == -1:
        return CompactionState(messages_to_compress=[], post_compression_messages=list(messages))
    return CompactionState(
        messages_to_compress=list(messages[: index + 1]),
        post_compression_messages=list(messages[index + 1:]),
    )


def format_compression_request(
    messages: list[Message],
    history: str,
    model: str,
    max_tokens: int = MAX_TOKENS,
) -> str:
    instruction = Message(role=Role.USER, content=summary_instruction())
    return json.dumps({
        "anthropic_version": model,
        "max_tokens": max_tokens,
        "system": compression_system_text(history),
        "messages": [_wire(m) for m in [*messages, instruction]],
    })


def parse_compression_response(messages: list[Message], raw: dict[str, Any]) -> str:
    content = raw.get("content") or ""
    if isinstance(content, str):
        return content
    return "".join(
        item.get("text", "") for item in content if isinstance(item, dict) and item.get("type") == "text"
    )
