"""
Anthropic API transport (content-block protocol) built on the Anthropic SDK.
"""

import json
from typing import Any

import anthropic
import structlog

from ...config import Settings
from ...errors import ConfigurationError, TransportError
from .base import BaseTransport

logger = structlog.get_logger()


class AnthropicTransport(BaseTransport):
    """Sends content-block requests to the Anthropic messages endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str | None = None,
        timeout: float = 300,
    ):
        self.model = model
        self.client = anthropic.AsyncAnthropic(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
        )

    @property
    def name(self) -> str:
        return "anthropic"

    @classmethod
    def from_settings(cls, settings: Settings, model: str) -> "AnthropicTransport":
        if not settings.anthropic_api_key:
            raise ConfigurationError("Anthropic API key missing: set ANTHROPIC_API_KEY")
        return cls(
            api_key=settings.anthropic_api_key,
            model=model,
            base_url=settings.anthropic_base_url,
            timeout=settings.request_timeout_seconds,
        )

    async def send(self, body: str) -> dict[str, Any]:
        kwargs = json.loads(body)
        # The messages API takes the model name where gateways take a version tag
        kwargs.pop("anthropic_version", None)
        kwargs["model"] = self.model

        try:
            response = await self.client.messages.create(**kwargs)
        except anthropic.APIStatusError as e:
            logger.error("Anthropic API error", status=e.status_code, error=str(e))
            raise TransportError("Anthropic API error", e.status_code, e.response.text) from e
        except anthropic.APIError as e:
            logger.error("Anthropic API error", error=str(e))
            raise TransportError(f"Anthropic API error: {e}") from e

        return response.model_dump(mode="json")

    async def aclose(self) -> None:
        await self.client.close()
