"""
Transcript rendering for the interactive terminal.

Protocol adapters walk messages and report what they see through a
TranscriptLog; the console implementation prints it with rich.
"""

import json
from abc import ABC, abstractmethod
from typing import Any

from rich.console import Console
from rich.text import Text


class TranscriptLog(ABC):
    """Sink for conversation events."""

    @abstractmethod
    def info(self, message: str) -> None:
        pass

    @abstractmethod
    def user(self, message: str) -> None:
        pass

    @abstractmethod
    def assistant(self, message: str) -> None:
        pass

    @abstractmethod
    def tool_use(self, name: str, input: dict[str, Any] | None = None) -> None:
        pass

    @abstractmethod
    def tool_result(self, name: str, content: str) -> None:
        pass


class ConsoleTranscript(TranscriptLog):
    """Prints the conversation to the terminal."""

    max_value_chars = 50
    max_line_chars = 80
    max_result_lines = 2

    def __init__(self, console: Console | None = None, assistant_name: str = "TinyCode"):
        self.console = console or Console(highlight=False)
        self.assistant_name = assistant_name

    def info(self, message: str) -> None:
        self.console.print(Text(message))

    def user(self, message: str) -> None:
        self.console.print(Text(f"> {message}", style="bold white"))
        self.console.print()

    def assistant(self, message: str) -> None:
        self.console.print(Text(f"{self.assistant_name}: {message}", style="bold grey62"))
        self.console.print()

    def tool_use(self, name: str, input: dict[str, Any] | None = None) -> None:
        self.console.print(Text(f'● ToolUse(name: "{name}")', style="yellow"))
        items = list((input or {}).items())
        for index, (key, value) in enumerate(items):
            prefix = "  └" if index == len(items) - 1 else "  ├"
            if isinstance(value, str):
                display = value if len(value) <= self.max_value_chars else value[: self.max_value_chars] + "..."
            else:
                display = json.dumps(value)
            self.console.print(Text(f'{prefix} "{key}": {display}', style="yellow"))
        self.console.print()

    def tool_result(self, name: str, content: str) -> None:
        self.console.print(Text(f'✔ ToolResult(name: "{name}")', style="green"))
        lines = content.split("\n")
        for line in lines[: self.max_result_lines]:
            display = line if len(line) <= self.max_line_chars else line[: self.max_line_chars] + "..."
            self.console.print(Text(f"  └ {display}", style="green"))
        if len(lines) > self.max_result_lines:
            self.console.print(Text(f"  ... ({len(lines) - self.max_result_lines} more)", style="green"))
        self.console.print()
