"""
Shell Command Tool - runs one command line in the workspace.

Commands run in their own process group with a timeout. Every live child is
tracked so a termination signal can tear them down: polite SIGTERM first,
SIGKILL after a grace period. Process groups that outlive their command
(jobs started with `&`) are remembered until a restart or shutdown.
"""

import asyncio
import logging
import os
import re
import signal
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Optional

from .base import Tool, ToolParameter

logger = logging.getLogger(__name__)

CANCELED_MESSAGE = "User canceled the operation, stop tool execution."
SHUTDOWN_NOTE = "Command terminated because the agent is shutting down"


@dataclass
class ShellConfig:
    """Configuration for shell command execution."""

    timeout_seconds: float = 10
    kill_grace_seconds: float = 2
    max_output_chars: int = 30000

    blocked_patterns: list[str] = field(default_factory=lambda: [
        r"rm\s+-rf\s+/(\s|$)",
        r"rm\s+-rf\s+~",
        r">\s*/dev/sd",
        r"\bmkfs",
        r"\bdd\s+if=",
        re.escape(":(){ :|:& };:"),
    ])

    # Asked before every command; None runs without asking.
    confirm: Optional[Callable[[str], Awaitable[bool]]] = None


class ShellExecutor:
    """Executes shell commands and tracks the child processes it starts."""

    def __init__(self, config: Optional[ShellConfig] = None):
        self.config = config or ShellConfig()
        self.active_processes: set[asyncio.subprocess.Process] = set()
        self.background_groups: set[int] = set()
        self._terminated: set[asyncio.subprocess.Process] = set()

    def _check_command(self, command: str) -> Optional[str]:
        """Return an error message if the command must not run."""
        if not command or not command.strip():
            return "Error: Command cannot be empty"
        if "\n" in command:
            return "Error: Command cannot contain newlines"
        for pattern in self.config.blocked_patterns:
            if re.search(pattern, command, re.IGNORECASE):
                return "Error: Command contains a blocked pattern"
        return None

    async def run(self, command: str, workspace_root: Path, restart: bool = False) -> str:
        """Run a command and return its formatted output."""
        problem = self._check_command(command)
        if problem:
            return problem

        if restart:
            logger.info(
                "Restarting terminal session, cleaning up %d processes and %d background groups",
                len(self.active_processes),
                len(self.background_groups),
            )
            await self.cleanup()

        if self.config.confirm is not None:
            if not await self.config.confirm(f'Run command "{command}" (YES/no) > '):
                return CANCELED_MESSAGE

        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(workspace_root),
                start_new_session=True,
            )
        except OSError as e:
            return f'Error executing command "{command}": {e}'

        self.active_processes.add(process)
        communicate = asyncio.ensure_future(process.communicate())
        timed_out = False
        try:
            try:
                stdout, stderr = await asyncio.wait_for(
                    asyncio.shield(communicate),
                    timeout=self.config.timeout_seconds,
                )
            except asyncio.TimeoutError:
                timed_out = True
                await self._stop(process)
                stdout, stderr = await communicate
        finally:
            self.active_processes.discard(process)

        terminated = process in self._terminated
        self._terminated.discard(process)
        # the shell is gone but jobs it backgrounded still hold its group
        if not (timed_out or terminated) and self._group_alive(process.pid):
            self.background_groups.add(process.pid)

        return self._format_output(
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
            process.returncode,
            timed_out,
            terminated,
        )

    def _format_output(
        self,
        stdout: str,
        stderr: str,
        returncode: Optional[int],
        timed_out: bool,
        terminated: bool = False,
    ) -> str:
        if terminated:
            note = f"\n{SHUTDOWN_NOTE}"
        elif timed_out:
            note = "\nCommand terminated likely to timeout, you can continue;"
        elif returncode != 0:
            note = f"\nCommand failed with code {returncode}"
        else:
            note = ""

        if stdout:
            stdout += note
        if stderr:
            stderr += note

        output = ""
        if stdout:
            output += f"stdout:\n{stdout}"
        if stderr:
            if output:
                output += "\n"
            output += f"stderr:\n{stderr}"

        if not output:
            output = note.strip() or "Command completed successfully (no output)"

        return self._truncate_output(output)

    def _truncate_output(self, output: str) -> str:
        """Truncate output to configured limits."""
        if len(output) > self.config.max_output_chars:
            output = output[: self.config.max_output_chars] + "\n\n... (truncated)"
        return output

    def _signal(self, process: asyncio.subprocess.Process, sig: int) -> None:
        try:
            os.killpg(os.getpgid(process.pid), sig)
        except (ProcessLookupError, PermissionError):
            pass
        except AttributeError:
            # no process groups on this platform
            if sig == signal.SIGTERM:
                process.terminate()
            else:
                process.kill()

    async def _stop(self, process: asyncio.subprocess.Process) -> None:
        """SIGTERM, then SIGKILL if the process outlives the grace period."""
        if process.returncode is not None:
            return
        self._signal(process, signal.SIGTERM)
        try:
            await asyncio.wait_for(process.wait(), timeout=self.config.kill_grace_seconds)
        except asyncio.TimeoutError:
            self._signal(process, getattr(signal, "SIGKILL", signal.SIGTERM))
            await process.wait()

    @staticmethod
    def _group_alive(pgid: int) -> bool:
        try:
            os.killpg(pgid, 0)
        except (ProcessLookupError, PermissionError, AttributeError):
            return False
        return True

    @staticmethod
    def _signal_group(pgid: int, sig: int) -> None:
        try:
            os.killpg(pgid, sig)
        except (ProcessLookupError, PermissionError):
            pass

    async def _stop_background_groups(self) -> None:
        """SIGTERM leftover groups, SIGKILL whatever survives the grace period."""
        groups = [g for g in self.background_groups if self._group_alive(g)]
        self.background_groups.clear()
        if not groups:
            return

        logger.info("Stopping %d background process groups", len(groups))
        for pgid in groups:
            self._signal_group(pgid, signal.SIGTERM)

        # not our children, so poll instead of wait()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.kill_grace_seconds
        while groups and loop.time() < deadline:
            await asyncio.sleep(0.05)
            groups = [g for g in groups if self._group_alive(g)]
        for pgid in groups:
            self._signal_group(pgid, signal.SIGKILL)

    async def cleanup(self) -> int:
        """Stop every tracked process. Returns how many commands were running."""
        processes = [p for p in self.active_processes if p.returncode is None]
        if processes:
            logger.info("Cleaning up %d active processes", len(processes))
        self._terminated.update(processes)
        await asyncio.gather(*(self._stop(p) for p in processes), return_exceptions=True)
        self.active_processes.clear()
        await self._stop_background_groups()
        return len(processes)

    def kill_all(self) -> int:
        """Synchronous last-resort teardown for interpreter shutdown."""
        processes = [p for p in self.active_processes if p.returncode is None]
        self._terminated.update(processes)
        for process in processes:
            self._signal(process, getattr(signal, "SIGKILL", signal.SIGTERM))
        self.active_processes.clear()
        for pgid in self.background_groups:
            self._signal_group(pgid, getattr(signal, "SIGKILL", signal.SIGTERM))
        self.background_groups.clear()
        return len(processes)


_shell_executor: Optional[ShellExecutor] = None


def get_shell_executor() -> ShellExecutor:
    """Get or create ShellExecutor singleton."""
    global _shell_executor
    if _shell_executor is None:
        _shell_executor = ShellExecutor()
    return _shell_executor


def create_shell_tools(config: Optional[ShellConfig] = None) -> list[Tool]:
    """Create shell-related tools. Passing a config replaces the shared executor."""
    global _shell_executor
    if config is not None:
        _shell_executor = ShellExecutor(config)
    executor = get_shell_executor()

    async def bash_handler(workspace_root: Path, command: str, restart: bool = False) -> str:
        return await executor.run(command, workspace_root, restart)

    bash = Tool(
        name="bash",
        description="Run a command in the terminal",
        parameters=[
            ToolParameter(
                name="command",
                param_type="string",
                description="The command to run in the terminal. Must not contain newlines.",
                required=True,
            ),
            ToolParameter(
                name="restart",
                param_type="boolean",
                description=(
                    "Optional flag to restart the terminal session. If true, background jobs "
                    "left running by earlier commands are stopped before the command runs."
                ),
                required=False,
            ),
        ],
        handler=bash_handler,
        builtin_type="bash_20250124",
    )

    return [bash]
