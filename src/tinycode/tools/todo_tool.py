"""
Todo Tool - a small task list the model keeps for multi-step work.

Todos live in ``.tinycode/todo.json`` under the workspace root.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from ..errors import ToolExecutionError
from .base import Tool, ToolParameter

logger = logging.getLogger(__name__)

COMMANDS = ("create", "check", "remove", "list")


def todo_file(workspace_root: Path) -> Path:
    return Path(workspace_root) / ".tinycode" / "todo.json"


def read_todos(workspace_root: Path) -> list[dict[str, Any]]:
    path = todo_file(workspace_root)
    if not path.exists():
        return []
    try:
        todos = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Unreadable todo file {path}: {e}")
        return []
    return todos if isinstance(todos, list) else []


def write_todos(workspace_root: Path, todos: list[dict[str, Any]]) -> None:
    path = todo_file(workspace_root)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(todos, indent=2))
    except OSError as e:
        raise ToolExecutionError(f"Failed to write todos: {e}") from e


def _find(todos: list[dict[str, Any]], todo_id: Optional[str]) -> dict[str, Any]:
    if not todo_id:
        raise ToolExecutionError("ID is required for this command.")
    for todo in todos:
        if todo.get("id") == todo_id:
            return todo
    raise ToolExecutionError(f"Todo with ID '{todo_id}' not found.")


async def todo_handler(
    workspace_root: Path,
    command: str,
    id: Optional[str] = None,
    content: Optional[str] = None,
) -> str:
    """Dispatch one todo command."""
    if command not in COMMANDS:
        return f"Error: Unknown command '{command}'. Available commands are: {', '.join(COMMANDS)}"

    todos = read_todos(workspace_root)

    if command == "list":
        if not todos:
            return "No todos found."
        lines = []
        for todo in todos:
            status = "✓" if todo.get("completed") else "○"
            created = str(todo.get("created_at", ""))[:10]
            lines.append(f"{status} [{todo.get('id')}] {todo.get('content')} (created: {created})")
        completed = sum(1 for todo in todos if todo.get("completed"))
        return f"Todos ({completed}/{len(todos)} completed):\n" + "\n".join(lines)

    if command == "create":
        if not content:
            raise ToolExecutionError("Content is required for creating a todo.")
        todo = {
            "id": str(uuid.uuid4()),
            "content": content,
            "completed": False,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        todos.append(todo)
        write_todos(workspace_root, todos)
        return f"Todo created successfully with ID: {todo['id']}"

    todo = _find(todos, id)

    if command == "check":
        # Toggles, so checking twice reopens the item
        todo["completed"] = not todo.get("completed", False)
        write_todos(workspace_root, todos)
        status = "completed" if todo["completed"] else "uncompleted"
        return f"Todo '{todo['content']}' marked as {status}."

    todos.remove(todo)
    write_todos(workspace_root, todos)
    return f"Todo '{todo['content']}' removed successfully."


def create_todo_tools() -> list[Tool]:
    """Create the todo tool."""
    todo = Tool(
        name="todo",
        description="A tool for managing TODO items. You can create, check, remove, and list todos.",
        parameters=[
            ToolParameter(
                name="command",
                param_type="string",
                description="The todo command to execute",
                enum=list(COMMANDS),
            ),
            ToolParameter(
                name="id",
                param_type="string",
                description="The TODO ID to operate on. Required for check and remove.",
                required=False,
            ),
            ToolParameter(
                name="content",
                param_type="string",
                description="The text of a new TODO. Required for create.",
                required=False,
            ),
        ],
        handler=todo_handler,
    )

    return [todo]
