"""
Tools module for agent capabilities.
"""

from .base import Tool, ToolParameter
from .registry import ToolRegistry, create_tool_registry
from .shell_tool import ShellConfig, ShellExecutor, get_shell_executor
from .file_tool import FileEditor
from .todo_tool import create_todo_tools

__all__ = [
    "Tool",
    "ToolParameter",
    "ToolRegistry",
    "create_tool_registry",
    "ShellConfig",
    "ShellExecutor",
    "get_shell_executor",
    "FileEditor",
    "create_todo_tools",
]
