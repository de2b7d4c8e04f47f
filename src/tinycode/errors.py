"""
Error types for tinycode.

Only ConfigurationError is allowed to stop the process; everything else is
reported by the agent loop, which then asks for input again.
"""


class TinycodeError(Exception):
    """Base class for all tinycode errors."""


class ConfigurationError(TinycodeError):
    """Unknown provider, model or protocol, or missing credentials."""


class TransportError(TinycodeError):
    """A backend call failed or returned a non-success status."""

    def __init__(self, message: str, status_code: int | None = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is None:
            return base
        return f"{base} (status {self.status_code}): {self.body}" if self.body else f"{base} (status {self.status_code})"


class ToolExecutionError(TinycodeError):
    """Raised inside a tool handler; converted to model-visible text by the registry."""
