"""
Base class for backend transports.

A transport knows how to authenticate against one backend family and POST a
serialized request body; it knows nothing about the body's format.
"""

from abc import ABC, abstractmethod
from typing import Any


class BaseTransport(ABC):
    """Sends one serialized request and returns the decoded JSON response."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Get the transport name."""
        pass

    @abstractmethod
    async def send(self, body: str) -> dict[str, Any]:
        """Send a request body. Raises TransportError on failure."""
        pass

    async def aclose(self) -> None:
        """Release network resources."""
        return None
