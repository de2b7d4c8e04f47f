"""
Tool registry for managing available tools.
"""

from pathlib import Path
from typing import Any

import structlog

from ..config import Settings, get_settings
from ..errors import ToolExecutionError
from .base import Tool

logger = structlog.get_logger()


class ToolRegistry:
    """Registry for managing tools."""

    def __init__(self):
        self._tools: dict[str, Tool] = {}
        self._aliases: dict[str, str] = {}

    def register(self, tool: Tool) -> None:
        """Register a tool."""
        self._tools[tool.name] = tool
        for alias in tool.aliases:
            self._aliases[alias] = tool.name
        logger.debug("Tool registered", tool_name=tool.name)

    def unregister(self, name: str) -> None:
        """Unregister a tool."""
        if name in self._tools:
            tool = self._tools.pop(name)
            for alias in tool.aliases:
                self._aliases.pop(alias, None)
            logger.debug("Tool unregistered", tool_name=name)

    def get(self, name: str) -> Tool | None:
        """Get a tool by name or alias."""
        return self._tools.get(name) or self._tools.get(self._aliases.get(name, ""))

    def list_tools(self) -> list[str]:
        """List all registered tool names."""
        return list(self._tools.keys())

    def schemas(
        self,
        schema_key: str,
        builtin_tools: dict[str, tuple[str, str]] | None = None,
    ) -> list[dict[str, Any]]:
        """Tool schemas in the shape a protocol expects ("content_block" or "function")."""
        if schema_key == "content_block":
            return [tool.content_block_schema(builtin_tools) for tool in self._tools.values()]
        return [tool.function_schema() for tool in self._tools.values()]

    async def execute(self, name: str, arguments: dict[str, Any], workspace_root: Path) -> str:
        """Execute a tool by name. Never raises; failures become model-visible text."""
        tool = self.get(name)
        if tool is None:
            logger.warning("Unknown tool requested", tool_name=name)
            return f"Error: Unknown tool '{name}'"

        try:
            logger.debug("Executing tool", tool_name=name, arguments=arguments)
            result = await tool.execute(arguments, workspace_root)
            logger.debug("Tool executed", tool_name=name)
            return result
        except ToolExecutionError as e:
            logger.info("Tool reported failure", tool_name=name, error=str(e))
            return f"Error: {e}"
        except Exception as e:
            logger.error("Tool execution error", tool_name=name, error=str(e))
            return f"Error: {e}"


def create_tool_registry(settings: Settings | None = None, confirm=None) -> ToolRegistry:
    """Build a registry with the default coding tools.

    ``confirm`` is an optional async callable used by the bash tool to ask
    before running a command.
    """
    settings = settings or get_settings()
    registry = ToolRegistry()

    from .shell_tool import ShellConfig, create_shell_tools
    shell_config = ShellConfig(
        timeout_seconds=settings.shell_timeout_seconds,
        confirm=confirm if settings.confirm_commands else None,
    )
    for tool in create_shell_tools(shell_config):
        registry.register(tool)

    from .file_tool import create_file_tools
    for tool in create_file_tools():
        registry.register(tool)

    from .todo_tool import create_todo_tools
    for tool in create_todo_tools():
        registry.register(tool)

    return registry
