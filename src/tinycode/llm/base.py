"""
Message model shared by every protocol adapter.

Buffers hold Message objects; adapters translate them to and from each
backend's wire JSON. The dict shapes produced by ``to_dict`` are also what the
session store persists.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


class Role(str, Enum):
    """Message roles for conversation."""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


@dataclass
class TextBlock:
    """Plain text fragment of a message."""

    text: str
    type: str = field(default="text", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": "text", "text": self.text}


@dataclass
class ToolUseBlock:
    """A tool invocation requested by the model."""

    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)
    type: str = field(default="tool_use", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": "tool_use", "id": self.id, "name": self.name, "input": self.input}


@dataclass
class ToolResultBlock:
    """Result of a tool invocation, keyed by the tool_use id it answers."""

    tool_use_id: str
    content: str
    type: str = field(default="tool_result", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": "tool_result", "tool_use_id": self.tool_use_id, "content": self.content}


ContentBlock = Union[TextBlock, ToolUseBlock, ToolResultBlock]


def block_from_dict(data: dict[str, Any]) -> ContentBlock | None:
    """Build a content block from its wire dict. Unknown types return None."""
    block_type = data.get("type")
    if block_type == "text":
        return TextBlock(text=data.get("text", ""))
    if block_type == "tool_use":
        raw_input = data.get("input")
        return ToolUseBlock(
            id=data["id"],
            name=data["name"],
            input=dict(raw_input) if isinstance(raw_input, dict) else {},
        )
    if block_type == "tool_result":
        content = data.get("content", "")
        if isinstance(content, list):
            content = "".join(part.get("text", "") for part in content if isinstance(part, dict))
        return ToolResultBlock(tool_use_id=data["tool_use_id"], content=content)
    return None


@dataclass
class ToolCall:
    """A function call requested by the model (function-call protocol)."""

    id: str
    name: str
    arguments: str = "{}"

    def parse_arguments(self) -> dict[str, Any]:
        """Decode the JSON argument string. Raises ValueError when malformed."""
        if not self.arguments:
            return {}
        parsed = json.loads(self.arguments)
        if not isinstance(parsed, dict):
            raise ValueError("arguments must be a JSON object")
        return parsed

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolCall":
        function = data.get("function") or {}
        arguments = function.get("arguments")
        if isinstance(arguments, dict):
            arguments = json.dumps(arguments)
        return cls(id=data["id"], name=function.get("name", ""), arguments=arguments or "{}")


@dataclass
class Message:
    """A message in the conversation."""

    role: Role
    content: str | list[ContentBlock] | None = ""
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None

    def __post_init__(self) -> None:
        self.role = Role(self.role)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"role": self.role.value}
        if isinstance(self.content, list):
            data["content"] = [block.to_dict() for block in self.content]
        else:
            data["content"] = self.content
        if self.tool_calls:
            data["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        content = data.get("content")
        if isinstance(content, list):
            blocks = [block_from_dict(item) for item in content if isinstance(item, dict)]
            content = [block for block in blocks if block is not None]
        tool_calls = data.get("tool_calls")
        return cls(
            role=Role(data["role"]),
            content=content,
            tool_calls=[ToolCall.from_dict(tc) for tc in tool_calls] if tool_calls else None,
            tool_call_id=data.get("tool_call_id"),
        )

    @property
    def text(self) -> str:
        """Concatenated text content, ignoring tool blocks."""
        if isinstance(self.content, str):
            return self.content
        if not self.content:
            return ""
        return "".join(block.text for block in self.content if isinstance(block, TextBlock))


@dataclass
class ChatResult:
    """New messages and stop reason produced by one backend round trip."""

    messages: list[Message] = field(default_factory=list)
    stop_reason: str | None = None


@dataclass
class CompactionState:
    """Partition of the live buffer: a prefix to summarize and a suffix kept verbatim."""

    messages_to_compress: list[Message] = field(default_factory=list)
    post_compression_messages: list[Message] = field(default_factory=list)


def is_text_only(message: Message) -> bool:
    """True if the message carries only text."""
    if message.tool_calls:
        return False
    if message.content is None:
        return False
    if isinstance(message.content, str):
        return True
    return all(isinstance(block, TextBlock) for block in message.content)


def is_tool_result_bearing(message: Message) -> bool:
    """True if the message content contains at least one tool_result block."""
    if not isinstance(message.content, list):
        return False
    return any(isinstance(block, ToolResultBlock) for block in message.content)


def tool_use_blocks(message: Message) -> list[ToolUseBlock]:
    if not isinstance(message.content, list):
        return []
    return [block for block in message.content if isinstance(block, ToolUseBlock)]


def check_tool_pairing(messages: list[Message]) -> list[str]:
    """Check that every tool result answers the pending tool request before it.

    Returns a list of problems; an empty list means the sequence can be sent
    to either protocol without a malformed tool pairing.
    """
    problems: list[str] = []
    pending: list[str] = []

    for index, message in enumerate(messages):
        if message.role == Role.TOOL:
            if not pending:
                problems.append(f"message {index}: tool reply {message.tool_call_id!r} has no pending request")
            elif message.tool_call_id != pending[0]:
                problems.append(
                    f"message {index}: tool reply {message.tool_call_id!r} does not match pending {pending[0]!r}"
                )
            else:
                pending.pop(0)
            continue

        if message.role == Role.USER and is_tool_result_bearing(message):
            for block in message.content:  # type: ignore[union-attr]
                if not isinstance(block, ToolResultBlock):
                    continue
                if not pending:
                    problems.append(f"message {index}: tool_result {block.tool_use_id!r} has no pending tool_use")
                elif block.tool_use_id != pending[0]:
                    problems.append(
                        f"message {index}: tool_result {block.tool_use_id!r} does not match pending {pending[0]!r}"
                    )
                else:
                    pending.pop(0)
            continue

        if pending and message.role != Role.ASSISTANT:
            problems.append(f"message {index}: tool request(s) {pending} left unanswered")
            pending = []

        if message.role == Role.ASSISTANT:
            if pending:
                problems.append(f"message {index}: tool request(s) {pending} left unanswered")
                pending = []
            pending.extend(block.id for block in tool_use_blocks(message))
            pending.extend(tc.id for tc in message.tool_calls or [])

    return problems
