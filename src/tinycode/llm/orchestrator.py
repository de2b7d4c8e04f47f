"""
Chat orchestrator: one protocol adapter bound to one transport.

The agent loop only ever talks to this class; it never sees which wire format
or backend is behind it.
"""

from pathlib import Path
from typing import Any

import structlog

from ..tools.registry import ToolRegistry
from ..transcript import TranscriptLog
from .base import ChatResult, Message
from .protocols import ProtocolAdapter
from .protocols.common import MAX_TOKENS
from .transports.base import BaseTransport

logger = structlog.get_logger()

DEFAULT_MAX_MESSAGES = 5


class ChatOrchestrator:
    """Serializes, sends, parses and compresses for a single backend."""

    def __init__(
        self,
        protocol: ProtocolAdapter,
        transport: BaseTransport,
        model: str,
        system_prompt: str,
        max_messages: int = DEFAULT_MAX_MESSAGES,
        max_tokens: int = MAX_TOKENS,
        builtin_tools: dict[str, tuple[str, str]] | None = None,
    ):
        self.protocol = protocol
        self.transport = transport
        self.model = model
        self.system_prompt = system_prompt
        self.max_messages = max_messages
        self.max_tokens = max_tokens
        # None keeps each tool's own built-in type
        self.builtin_tools = builtin_tools

    async def chat(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None,
        history: str,
    ) -> ChatResult:
        """One backend round trip. TransportError propagates unretried."""
        body = self.protocol.format_request(
            messages,
            tools,
            system=self.system_prompt,
            history=history,
            model=self.model,
            max_tokens=self.max_tokens,
        )
        logger.debug(
            "Sending chat request",
            transport=self.transport.name,
            protocol=self.protocol.kind.value,
            messages=len(messages),
        )

        raw = await self.transport.send(body)
        result = self.protocol.parse_response(raw)

        logger.debug("Chat response received", new_messages=len(result.messages), stop_reason=result.stop_reason)
        return result

    async def compress(self, messages: list[Message], history: str) -> tuple[str, list[Message]]:
        """Summarize a prefix of the buffer into the history.

        Returns (history, messages) unchanged when the adapter finds nothing
        to compress. On failure the inputs are left untouched.
        """
        state = self.protocol.plan_compression(messages)
        if not state.messages_to_compress:
            logger.debug("Nothing to compress", messages=len(messages))
            return history, messages

        body = self.protocol.format_compression_request(
            state.messages_to_compress,
            history=history,
            model=self.model,
            max_tokens=self.max_tokens,
        )
        raw = await self.transport.send(body)
        new_history = self.protocol.parse_compression_response(state.messages_to_compress, raw)

        logger.info(
            "Compression complete",
            compressed=len(state.messages_to_compress),
            retained=len(state.post_compression_messages),
        )
        return new_history, list(state.post_compression_messages)

    async def dispatch_tools(
        self,
        messages: list[Message],
        registry: ToolRegistry,
        workspace_root: Path,
        log: TranscriptLog,
    ) -> list[Message] | None:
        return await self.protocol.dispatch_tools(messages, registry, workspace_root, log)

    def needs_tool_processing(self, stop_reason: str | None) -> bool:
        return self.protocol.needs_tool_processing(stop_reason)

    def should_compress(self, messages: list[Message]) -> bool:
        return len(messages) >= self.max_messages

    def tool_schemas(self, registry: ToolRegistry) -> list[dict[str, Any]]:
        return registry.schemas(self.protocol.schema_key, self.builtin_tools)

    def log_messages(self, messages: list[Message], log: TranscriptLog) -> None:
        self.protocol.log_messages(messages, log)

    async def aclose(self) -> None:
        await self.transport.aclose()
