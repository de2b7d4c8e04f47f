"""
The interactive agent loop.

Each iteration either runs the tools the model asked for or reads one line of
user input, compresses the buffer when it has grown past the threshold, and
makes exactly one chat call. The session is saved after every iteration,
whether or not it succeeded.
"""

from enum import Enum
from typing import Awaitable, Callable

import structlog

from ..config import Settings
from ..llm.base import Message, Role
from ..llm.orchestrator import ChatOrchestrator
from ..tools.registry import ToolRegistry
from ..transcript import TranscriptLog
from .session import AgentSession, SessionStore

logger = structlog.get_logger()

PROMPT = "> "

# Returns None when the input source is exhausted
InputReader = Callable[[str], Awaitable[str | None]]
CommandHandler = Callable[[str, "AgentLoop"], Awaitable[bool]]


class LoopState(str, Enum):
    """What the next iteration does before calling the model."""
    TOOL_EXECUTION = "tool_execution"
    AWAITING_INPUT = "awaiting_input"


class AgentLoop:
    """Drives one conversation against a ChatOrchestrator."""

    def __init__(
        self,
        orchestrator: ChatOrchestrator,
        registry: ToolRegistry,
        store: SessionStore,
        settings: Settings,
        read_input: InputReader,
        log: TranscriptLog,
        handle_command: CommandHandler | None = None,
        session: AgentSession | None = None,
        provider: str = "",
    ):
        self.orchestrator = orchestrator
        self.registry = registry
        self.store = store
        self.settings = settings
        self.read_input = read_input
        self.log = log
        self.handle_command = handle_command
        self.session = session or store.create()
        self.provider = provider or settings.provider
        self.tools = orchestrator.tool_schemas(registry)
        self._force_input = False

    @property
    def state(self) -> LoopState:
        if self._force_input:
            return LoopState.AWAITING_INPUT
        if self.orchestrator.needs_tool_processing(self.session.stop_reason):
            return LoopState.TOOL_EXECUTION
        return LoopState.AWAITING_INPUT

    def switch_session(self, session: AgentSession) -> None:
        """Replace the active conversation and replay its transcript."""
        self.session = session
        self._force_input = False
        self.orchestrator.log_messages(session.messages, self.log)

    async def run_iteration(self) -> bool:
        """Run one iteration. Returns False once input is exhausted."""
        state = self.state
        self._force_input = False
        session = self.session

        try:
            if state == LoopState.TOOL_EXECUTION:
                replies = await self.orchestrator.dispatch_tools(
                    session.messages, self.registry, self.settings.workspace_root, self.log
                )
                if replies is None:
                    logger.warning("No tool call to dispatch", stop_reason=session.stop_reason)
                    self._force_input = True
                    return True
                session.messages = [*session.messages, *replies]
            else:
                line = await self.read_input(PROMPT)
                if line is None:
                    return False
                line = line.strip()
                if not line:
                    return True
                if self.handle_command and await self.handle_command(line, self):
                    return True
                session.messages = [*session.messages, Message(role=Role.USER, content=line)]

            if self.orchestrator.should_compress(session.messages):
                session.history, session.messages = await self.orchestrator.compress(
                    session.messages, session.history
                )

            result = await self.orchestrator.chat(session.messages, self.tools, session.history)
            self.orchestrator.log_messages(result.messages, self.log)

            session.messages = [*session.messages, *result.messages]
            session.stop_reason = result.stop_reason
        except Exception as e:
            logger.error(
                "Error occurred while processing",
                error=str(e),
                error_type=type(e).__name__,
                last_messages=[m.to_dict() for m in session.messages[-2:]],
            )
            self.log.info(f"Error: {e}")
            self._force_input = True
        finally:
            await self._persist()

        return True

    async def _persist(self) -> None:
        # A session switched by a slash command is saved as the new active one
        session = self.session
        try:
            await self.store.save(
                session.id,
                session.messages,
                session.history,
                session.stop_reason,
                self.provider,
                self.orchestrator.model,
            )
        except Exception as e:
            logger.error("Failed to save session", session_id=session.id, error=str(e))

    async def run(self) -> None:
        """Replay the restored transcript, then loop until input runs out."""
        self.orchestrator.log_messages(self.session.messages, self.log)
        while await self.run_iteration():
            pass
        logger.debug("Input exhausted, leaving agent loop", session_id=self.session.id)
