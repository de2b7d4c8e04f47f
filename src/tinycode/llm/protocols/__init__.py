"""
Protocol adapters.

Each backend wire format is a ProtocolKind; its adapter is a dispatch table
of plain functions with the same signature for every kind, so the
orchestrator never needs to know which format it is talking.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

from ...errors import ConfigurationError
from ..base import ChatResult, CompactionState, Message
from . import content_block, function_call
from .common import MAX_TOKENS


class ProtocolKind(str, Enum):
    """Wire formats a backend can speak."""
    CONTENT_BLOCK = "content_block"
    FUNCTION_CALL = "function_call"


@dataclass(frozen=True)
class ProtocolAdapter:
    """Capabilities of one wire protocol."""

    kind: ProtocolKind
    schema_key: str
    format_request: Callable[..., str]
    parse_response: Callable[[dict[str, Any]], ChatResult]
    needs_tool_processing: Callable[[str | None], bool]
    extract_tool_calls: Callable[[Message], list]
    dispatch_tools: Callable[..., Awaitable[list[Message] | None]]
    log_messages: Callable[..., None]
    plan_compression: Callable[[list[Message]], CompactionState]
    format_compression_request: Callable[..., str]
    parse_compression_response: Callable[[list[Message], dict[str, Any]], str]


def _adapter(kind: ProtocolKind, schema_key: str, module) -> ProtocolAdapter:
    return ProtocolAdapter(
        kind=kind,
        schema_key=schema_key,
        format_request=module.format_request,
        parse_response=module.parse_response,
        needs_tool_processing=module.needs_tool_processing,
        extract_tool_calls=module.extract_tool_calls,
        dispatch_tools=module.dispatch_tools,
        log_messages=module.log_messages,
        plan_compression=module.plan_compression,
        format_compression_request=module.format_compression_request,
        parse_compression_response=module.parse_compression_response,
    )


PROTOCOLS: dict[ProtocolKind, ProtocolAdapter] = {
    ProtocolKind.CONTENT_BLOCK: _adapter(ProtocolKind.CONTENT_BLOCK, "content_block", content_block),
    ProtocolKind.FUNCTION_CALL: _adapter(ProtocolKind.FUNCTION_CALL, "function", function_call),
}


def get_protocol(kind: ProtocolKind | str) -> ProtocolAdapter:
    """Look up an adapter by kind."""
    try:
        return PROTOCOLS[ProtocolKind(kind)]
    except (ValueError, KeyError):
        raise ConfigurationError(f"Unknown protocol: {kind}") from None


__all__ = [
    "MAX_TOKENS",
    "PROTOCOLS",
    "ProtocolAdapter",
    "ProtocolKind",
    "get_protocol",
]
