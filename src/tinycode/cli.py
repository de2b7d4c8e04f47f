"""
Command-line interface for tinycode.
"""

import argparse
import asyncio
import logging
import signal
import sys
import threading
from pathlib import Path

import structlog

from .config import Settings, get_settings
from .errors import ConfigurationError

structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.dev.ConsoleRenderer(colors=True),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

CONFIRM_ANSWERS = ("yes", "y", "confirm", "ok", "")


async def read_line(prompt: str) -> str | None:
    """Read one line from stdin without blocking the event loop.

    The read runs on a daemon thread so an interrupted process can exit while
    input() is still waiting. Returns None at end of input.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[str | None] = loop.create_future()

    def deliver(value: str | None) -> None:
        if not future.done():
            future.set_result(value)

    def reader() -> None:
        try:
            line: str | None = input(prompt)
        except EOFError:
            line = None
        loop.call_soon_threadsafe(deliver, line)

    threading.Thread(target=reader, name="tinycode-input", daemon=True).start()
    return await future


async def confirm_command(prompt: str) -> bool:
    """Ask before running a shell command; an empty answer means yes."""
    answer = await read_line(prompt)
    return answer is not None and answer.strip().lower() in CONFIRM_ANSWERS


def main() -> None:
    """Main entry point for the CLI."""
    from .llm.factory import PROVIDER_MODELS

    parser = argparse.ArgumentParser(
        prog="tinycode",
        description="tinycode - an agentic coding assistant for your terminal",
    )
    parser.add_argument("--provider", choices=list(PROVIDER_MODELS), help="Backend provider")
    parser.add_argument("--model", help="Model name (provider default when omitted)")
    parser.add_argument("--session", help="Session id (or 8 character short id) to resume")
    parser.add_argument("--workspace", type=Path, help="Workspace root (defaults to the current directory)")
    parser.add_argument("--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR)")
    parser.add_argument("--no-confirm", action="store_true", help="Run shell commands without asking")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")
    subparsers.add_parser("sessions", help="List stored sessions")

    args = parser.parse_args()

    try:
        settings = build_settings(args)
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(2)

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(message)s",
        stream=sys.stderr,
    )

    try:
        if args.command == "sessions":
            asyncio.run(list_sessions(settings))
        else:
            asyncio.run(run_agent(settings, args.session))
    except ConfigurationError as e:
        logger.error("Configuration error", error=str(e))
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        from .tools.shell_tool import get_shell_executor
        get_shell_executor().kill_all()
        sys.exit(130)


def build_settings(args: argparse.Namespace) -> Settings:
    """Settings from the environment, overridden by command-line options."""
    overrides = {}
    if args.provider:
        overrides["provider"] = args.provider
    if args.model:
        overrides["model"] = args.model
    if args.workspace:
        overrides["workspace_root"] = args.workspace.resolve()
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.no_confirm:
        overrides["confirm_commands"] = False

    if not overrides:
        return get_settings()
    return Settings(**overrides)


async def list_sessions(settings: Settings) -> None:
    """Print stored sessions."""
    from .agent.session import SessionStore

    store = SessionStore(settings.resolved_database_url)
    await store.init()
    try:
        sessions = await store.list_sessions()
    finally:
        await store.close()

    if not sessions:
        print("No sessions found.")
        return

    print("Stored sessions:")
    for session in sessions:
        updated = session.updated_at.strftime("%Y-%m-%d %H:%M") if session.updated_at else "?"
        print(f"  {session.id[:8]}  {updated}  [{session.provider}/{session.model}] {session.title}")


async def run_agent(settings: Settings, session_id: str | None = None) -> None:
    """Run the interactive agent loop until input is exhausted."""
    from .agent.commands import SlashCommands
    from .agent.loop import AgentLoop
    from .agent.session import SessionStore
    from .llm.factory import create_orchestrator
    from .tools.registry import create_tool_registry
    from .tools.shell_tool import get_shell_executor
    from .transcript import ConsoleTranscript

    # Configuration problems surface here, before anything is read or sent
    orchestrator = create_orchestrator(settings.provider, settings.model, settings)

    store = SessionStore(settings.resolved_database_url)
    await store.init()

    log = ConsoleTranscript()
    registry = create_tool_registry(settings, confirm=confirm_command)

    if session_id:
        data = await store.load(await store.resolve_id(session_id))
        if data is None:
            await store.close()
            await orchestrator.aclose()
            raise ConfigurationError(f"Session not found: {session_id}")
    else:
        data = await store.load_last()
    session = data.to_agent_session() if data else store.create()

    agent_loop = AgentLoop(
        orchestrator=orchestrator,
        registry=registry,
        store=store,
        settings=settings,
        read_input=read_line,
        log=log,
        handle_command=SlashCommands(store, registry, log),
        session=session,
        provider=settings.provider,
    )

    main_task = asyncio.current_task()

    def on_sigterm() -> None:
        logger.info("Received SIGTERM, shutting down")
        if main_task is not None:
            main_task.cancel()

    event_loop = asyncio.get_running_loop()
    try:
        event_loop.add_signal_handler(signal.SIGTERM, on_sigterm)
    except NotImplementedError:
        # Windows event loops have no signal handler support
        pass

    log.info("Ready!")
    log.info(f"Provider: {settings.provider}")
    log.info(f"Model: {orchestrator.model}")
    log.info(f"Session: {session.short_id}")

    try:
        await agent_loop.run()
    except asyncio.CancelledError:
        logger.info("Agent loop cancelled", session_id=agent_loop.session.id)
    finally:
        stopped = await get_shell_executor().cleanup()
        if stopped:
            logger.info("Stopped running shell commands", count=stopped)
        await orchestrator.aclose()
        await store.close()


if __name__ == "__main__":
    main()
