"""
GitHub Copilot chat transport (function-call protocol).

A GitHub OAuth token is exchanged for a short-lived Copilot token, which is
cached until it expires. Obtaining the GitHub token itself (device flow) is
left to the user; it is read from configuration.
"""

import time
from typing import Any

import httpx
import structlog

from ...config import Settings
from ...errors import ConfigurationError, TransportError
from .base import BaseTransport

logger = structlog.get_logger()

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/json",
    "User-Agent": "GitHubCopilotChat/0.26.7",
    "Editor-Version": "vscode/1.99.3",
}


class CopilotTransport(BaseTransport):
    """Posts chat completions to the Copilot API."""

    def __init__(
        self,
        github_token: str,
        chat_url: str,
        token_url: str,
        timeout: float = 300,
        client: httpx.AsyncClient | None = None,
    ):
        self.github_token = github_token
        self.chat_url = chat_url
        self.token_url = token_url
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self._token: str | None = None
        self._token_expires = 0.0

    @property
    def name(self) -> str:
        return "copilot"

    @classmethod
    def from_settings(cls, settings: Settings) -> "CopilotTransport":
        if not settings.github_token:
            raise ConfigurationError("GitHub token missing: set GITHUB_TOKEN to use the copilot provider")
        return cls(
            github_token=settings.github_token,
            chat_url=settings.copilot_chat_url,
            token_url=settings.copilot_token_url,
            timeout=settings.request_timeout_seconds,
        )

    async def _authenticate(self) -> str:
        if self._token and time.time() < self._token_expires:
            return self._token

        try:
            response = await self.client.get(
                self.token_url,
                headers={
                    **DEFAULT_HEADERS,
                    "Authorization": f"Bearer {self.github_token}",
                    "Editor-Plugin-Version": "copilot-chat/0.26.7",
                },
            )
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to obtain GitHub Copilot token: {e}") from e

        if response.status_code >= 400:
            raise TransportError("Failed to obtain GitHub Copilot token", response.status_code, response.text)

        data = response.json()
        self._token = data["token"]
        self._token_expires = float(data.get("expires_at", 0))
        logger.debug("Copilot token refreshed", expires_at=self._token_expires)
        return self._token

    async def send(self, body: str) -> dict[str, Any]:
        token = await self._authenticate()

        try:
            response = await self.client.post(
                self.chat_url,
                content=body,
                headers={**DEFAULT_HEADERS, "Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as e:
            raise TransportError(f"Copilot API error: {e}") from e

        if response.status_code >= 400:
            raise TransportError("Copilot API error", response.status_code, response.text)

        return response.json()

    async def aclose(self) -> None:
        await self.client.aclose()
