"""
File Editor Tool - view, create and edit files inside the workspace root.

Mirrors the command set of the str_replace_editor tool that content-block
backends know natively, so the same tool works on both protocols.
"""

import logging
from pathlib import Path
from typing import Optional

from ..errors import ToolExecutionError
from .base import Tool, ToolParameter

logger = logging.getLogger(__name__)

COMMANDS = ("view", "create", "str_replace", "insert", "undo_edit")


class FileEditor:
    """Performs editor commands and remembers previous contents for undo."""

    max_listing_entries = 200

    def __init__(self):
        self._history: dict[Path, list[str]] = {}

    def resolve(self, workspace_root: Path, path: str) -> Path:
        """Resolve a path and make sure it stays inside the workspace root."""
        root = Path(workspace_root).resolve()
        p = Path(path)
        if not p.is_absolute():
            p = root / p
        resolved = p.resolve()

        if resolved != root and root not in resolved.parents:
            logger.warning(f"Path outside workspace: {path}")
            raise ToolExecutionError(f"The path {resolved} is outside the root directory.")

        return resolved

    def _remember(self, file_path: Path) -> None:
        if file_path.exists():
            self._history.setdefault(file_path, []).append(file_path.read_text())

    def view(self, file_path: Path, view_range: Optional[list[int]] = None) -> str:
        if not file_path.exists():
            raise ToolExecutionError(f"The path {file_path} does not exist.")

        if file_path.is_dir():
            if view_range:
                raise ToolExecutionError("The view_range parameter is not allowed when path points to a directory.")
            return self._list_directory(file_path)

        lines = file_path.read_text().split("\n")
        start = 1
        if view_range:
            if len(view_range) != 2:
                raise ToolExecutionError("view_range must contain exactly two integers.")
            start, end = view_range
            if end == -1:
                end = len(lines)
            if start < 1 or start > len(lines) or end < start:
                raise ToolExecutionError(
                    f"Invalid view_range {view_range}: the file has {len(lines)} lines."
                )
            lines = lines[start - 1:end]

        numbered = "\n".join(f"{number:6}\t{line}" for number, line in enumerate(lines, start=start))
        return f"Here's the result of running `cat -n` on {file_path}:\n{numbered}"

    @staticmethod
    def _visible_children(dir_path: Path) -> list[Path]:
        try:
            return sorted(p for p in dir_path.iterdir() if not p.name.startswith("."))
        except OSError:
            return []

    def _list_directory(self, dir_path: Path) -> str:
        entries = []
        truncated = False
        # two levels only; hidden directories are never descended into
        for entry in self._visible_children(dir_path):
            if len(entries) >= self.max_listing_entries:
                truncated = True
                break
            if entry.is_dir():
                entries.append(f"{entry.name}/")
                entries.extend(
                    f"{entry.name}/{child.name}/" if child.is_dir() else f"{entry.name}/{child.name}"
                    for child in self._visible_children(entry)
                )
            else:
                entries.append(entry.name)

        if len(entries) > self.max_listing_entries:
            entries = entries[: self.max_listing_entries]
            truncated = True
        if truncated:
            entries.append("... (truncated)")
        listing = "\n".join(entries) if entries else "(empty directory)"
        return f"Files and directories up to 2 levels deep in {dir_path}:\n{listing}"

    def create(self, file_path: Path, file_text: Optional[str]) -> str:
        if file_text is None:
            raise ToolExecutionError("Parameter `file_text` is required for command: create")
        self._remember(file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(file_text)
        return f"File created successfully at: {file_path}"

    def str_replace(self, file_path: Path, old_str: Optional[str], new_str: Optional[str]) -> str:
        if old_str is None:
            raise ToolExecutionError("Parameter `old_str` is required for command: str_replace")
        if not file_path.is_file():
            raise ToolExecutionError(f"The path {file_path} is not a file.")

        content = file_path.read_text()
        occurrences = content.count(old_str)
        if occurrences == 0:
            raise ToolExecutionError(f"No replacement was performed, old_str did not appear verbatim in {file_path}.")
        if occurrences > 1:
            raise ToolExecutionError(
                f"No replacement was performed. Multiple occurrences ({occurrences}) of old_str in {file_path}. "
                "Please ensure it is unique."
            )

        self._remember(file_path)
        file_path.write_text(content.replace(old_str, new_str or "", 1))
        return f"The file {file_path} has been edited successfully."

    def insert(self, file_path: Path, insert_line: Optional[int], new_str: Optional[str]) -> str:
        if insert_line is None or new_str is None:
            raise ToolExecutionError("Parameters `insert_line` and `new_str` are required for command: insert")
        if not file_path.is_file():
            raise ToolExecutionError(f"The path {file_path} is not a file.")

        lines = file_path.read_text().split("\n")
        if insert_line < 0 or insert_line > len(lines):
            raise ToolExecutionError(
                f"Invalid insert_line {insert_line}: it should be within [0, {len(lines)}]."
            )

        self._remember(file_path)
        updated = lines[:insert_line] + new_str.split("\n") + lines[insert_line:]
        file_path.write_text("\n".join(updated))
        return f"The file {file_path} has been edited successfully."

    def undo_edit(self, file_path: Path) -> str:
        history = self._history.get(file_path)
        if not history:
            raise ToolExecutionError(f"No edit history found for {file_path}.")
        file_path.write_text(history.pop())
        return f"Last edit to {file_path} undone successfully."


_file_editor: Optional[FileEditor] = None


def get_file_editor() -> FileEditor:
    """Get or create FileEditor singleton."""
    global _file_editor
    if _file_editor is None:
        _file_editor = FileEditor()
    return _file_editor


async def editor_handler(
    workspace_root: Path,
    command: str,
    path: str,
    view_range: Optional[list[int]] = None,
    old_str: Optional[str] = None,
    new_str: Optional[str] = None,
    file_text: Optional[str] = None,
    insert_line: Optional[int] = None,
    insert_text: Optional[str] = None,
) -> str:
    """Dispatch one editor command."""
    if command not in COMMANDS:
        return f"Error: Unknown command '{command}'. Available commands are: {', '.join(COMMANDS)}"

    editor = get_file_editor()
    file_path = editor.resolve(workspace_root, path)

    if command == "view":
        return editor.view(file_path, view_range)
    if command == "create":
        return editor.create(file_path, file_text)
    if command == "str_replace":
        return editor.str_replace(file_path, old_str, new_str)
    if command == "insert":
        return editor.insert(file_path, insert_line, new_str if new_str is not None else insert_text)
    return editor.undo_edit(file_path)


def create_file_tools() -> list[Tool]:
    """Create file editing tools."""
    editor = Tool(
        name="str_replace_editor",
        description=(
            "A comprehensive text editor tool that allows viewing, creating, and modifying text files. "
            "Supports precise text replacement, file creation, content insertion, and directory listing."
        ),
        parameters=[
            ToolParameter(
                name="command",
                param_type="string",
                description="The editing command to execute",
                enum=list(COMMANDS),
            ),
            ToolParameter(
                name="path",
                param_type="string",
                description=(
                    "The file or directory path to operate on. For view command, can be a file "
                    "(to read contents) or directory (to list contents). For all other commands, "
                    "must be a file path."
                ),
            ),
            ToolParameter(
                name="view_range",
                param_type="array",
                description=(
                    "Optional [start_line, end_line], 1-indexed. Use -1 for end_line to read to end "
                    "of file. Only applicable to the view command on files."
                ),
                required=False,
                items={"type": "integer"},
            ),
            ToolParameter(
                name="old_str",
                param_type="string",
                description="The exact text to replace. Required for 'str_replace'.",
                required=False,
            ),
            ToolParameter(
                name="new_str",
                param_type="string",
                description="The replacement text, or the text to insert. Required for 'str_replace' and 'insert'.",
                required=False,
            ),
            ToolParameter(
                name="file_text",
                param_type="string",
                description="The complete content of a new file. Required for 'create'.",
                required=False,
            ),
            ToolParameter(
                name="insert_line",
                param_type="integer",
                description="Line number after which to insert new_str; 0 inserts at the beginning. Required for 'insert'.",
                required=False,
            ),
        ],
        handler=editor_handler,
        builtin_type="text_editor_20250124",
        # name of the same built-in editor on Claude 4 models
        aliases=["str_replace_based_edit_tool"],
    )

    return [editor]
