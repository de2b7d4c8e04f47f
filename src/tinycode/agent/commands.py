"""
Slash commands available at the input prompt.
"""

from typing import TYPE_CHECKING

import structlog

from ..tools.registry import ToolRegistry
from ..transcript import TranscriptLog
from .session import SessionData, SessionStore

if TYPE_CHECKING:
    from .loop import AgentLoop

logger = structlog.get_logger()

HELP_LINES = [
    "Available commands:",
    "/help - Show this help message",
    "/tools - List available tools",
    "/sessions - List all sessions",
    "/new - Create a new session",
    "/load <sessionId> - Load a session",
    "/remove <sessionId> - Remove a session",
    "/history - Show the compressed chat history",
]


class SlashCommands:
    """Handles ``/command`` input lines for an AgentLoop."""

    def __init__(self, store: SessionStore, registry: ToolRegistry, log: TranscriptLog):
        self.store = store
        self.registry = registry
        self.log = log

    async def __call__(self, line: str, loop: "AgentLoop") -> bool:
        """Run a command line. Returns False when the line is not a command."""
        if not line.startswith("/"):
            return False

        parts = line[1:].split()
        if not parts:
            return False

        command = parts[0].lower()
        arg = parts[1] if len(parts) > 1 else None
        logger.debug("Slash command", command=command)

        if command == "help":
            self.help()
        elif command == "tools":
            self.tools()
        elif command == "sessions":
            await self.sessions()
        elif command == "new":
            self.new(loop)
        elif command == "load":
            await self.load(loop, arg)
        elif command == "remove":
            await self.remove(loop, arg)
        elif command == "history":
            self.history(loop)
        else:
            self.log.info(f"Unknown command: {line}")
            self.help()

        return True

    def help(self) -> None:
        for entry in HELP_LINES:
            self.log.info(entry)

    def tools(self) -> None:
        self.log.info("Available tools:")
        for name in self.registry.list_tools():
            self.log.info(f"- {name}")

    def _print_sessions(self, sessions: list[SessionData], with_date: bool = False) -> None:
        for index, session in enumerate(sessions, start=1):
            entry = f"{index}. {session.id[:8]} - {session.title}"
            if with_date and session.updated_at:
                entry += f" ({session.updated_at.date().isoformat()})"
            self.log.info(entry)

    async def sessions(self) -> None:
        sessions = await self.store.list_sessions()
        if not sessions:
            self.log.info("No sessions found.")
            return
        self.log.info("Available sessions:")
        self._print_sessions(sessions, with_date=True)

    async def _usage(self, usage: str) -> None:
        self.log.info(usage)
        self.log.info("Available sessions:")
        self._print_sessions(await self.store.list_sessions())

    def new(self, loop: "AgentLoop") -> None:
        session = self.store.create()
        loop.switch_session(session)
        self.log.info(f"Created new session: {session.short_id}")

    async def load(self, loop: "AgentLoop", session_id: str | None) -> None:
        if not session_id:
            await self._usage("Usage: /load <sessionId>")
            return

        data = await self.store.load(await self.store.resolve_id(session_id))
        if data is None:
            self.log.info(f"Session not found: {session_id}")
            return

        loop.switch_session(data.to_agent_session())
        self.log.info(f"Loaded session: {data.title}")

    async def remove(self, loop: "AgentLoop", session_id: str | None) -> None:
        if not session_id:
            await self._usage("Usage: /remove <sessionId>")
            return

        full_id = await self.store.resolve_id(session_id)
        if not await self.store.remove(full_id):
            self.log.info(f"Session not found: {session_id}")
            return

        self.log.info(f"Removed session: {session_id}")
        # The loop saves its session after every iteration; don't bring the removed one back
        if loop.session.id == full_id:
            self.new(loop)

    def history(self, loop: "AgentLoop") -> None:
        if not loop.session.history:
            self.log.info("Chat history is empty.")
            return
        self.log.info(loop.session.history)
