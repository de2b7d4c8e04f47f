"""
Base classes for tools.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Coroutine


@dataclass
class ToolParameter:
    """Definition of a tool parameter."""

    name: str
    param_type: str  # string, integer, boolean, array, object
    description: str
    required: bool = True
    enum: list[str] | None = None
    items: dict[str, Any] | None = None


@dataclass
class Tool:
    """
    A capability the model can invoke.

    The handler receives the workspace root plus the model-supplied arguments
    and returns model-visible text. Business failures are returned as text or
    raised as ToolExecutionError; the registry turns the latter into text.
    """

    name: str
    description: str
    parameters: list[ToolParameter]
    handler: Callable[..., Coroutine[Any, Any, str]]
    builtin_type: str | None = None  # e.g. "bash_20250124" for content-block backends
    aliases: list[str] = field(default_factory=list)

    def get_parameters_schema(self) -> dict[str, Any]:
        """Convert parameters to JSON Schema format."""
        properties = {}
        required = []

        for param in self.parameters:
            prop: dict[str, Any] = {
                "type": param.param_type,
                "description": param.description,
            }
            if param.enum:
                prop["enum"] = param.enum
            if param.items:
                prop["items"] = param.items

            properties[param.name] = prop

            if param.required:
                required.append(param.name)

        return {
            "type": "object",
            "properties": properties,
            "required": required,
            "additionalProperties": False,
        }

    def content_block_schema(self, builtin_tools: dict[str, tuple[str, str]] | None = None) -> dict[str, Any]:
        """Schema sent to content-block backends.

        ``builtin_tools`` maps tool names to the (name, type) pair a model
        knows natively. When it is None the tool's own ``builtin_type`` is
        used; tools missing from the mapping get a plain input schema.
        """
        if builtin_tools is None:
            if self.builtin_type:
                return {"name": self.name, "type": self.builtin_type}
        elif self.name in builtin_tools:
            name, builtin_type = builtin_tools[self.name]
            return {"name": name, "type": builtin_type}
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.get_parameters_schema(),
        }

    def function_schema(self) -> dict[str, Any]:
        """Schema sent to function-call backends."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                # strict mode requires every property to be listed as required
                "strict": all(param.required for param in self.parameters),
                "description": self.description,
                "parameters": self.get_parameters_schema(),
            },
        }

    async def execute(self, input: dict[str, Any], workspace_root: Path) -> str:
        """Execute the tool handler."""
        return await self.handler(workspace_root, **input)
