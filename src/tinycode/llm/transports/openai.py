"""
OpenAI API transport (function-call protocol), also usable with compatible APIs.
"""

import json
from typing import Any

import openai
import structlog

from ...config import Settings
from ...errors import ConfigurationError, TransportError
from .base import BaseTransport

logger = structlog.get_logger()


class OpenAITransport(BaseTransport):
    """Sends function-call requests to the chat completions endpoint."""

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        timeout: float = 300,
    ):
        self.client = openai.AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
        )

    @property
    def name(self) -> str:
        return "openai"

    @classmethod
    def from_settings(cls, settings: Settings) -> "OpenAITransport":
        if not settings.openai_api_key:
            raise ConfigurationError("OpenAI API key missing: set OPENAI_API_KEY")
        return cls(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            timeout=settings.request_timeout_seconds,
        )

    async def send(self, body: str) -> dict[str, Any]:
        kwargs = json.loads(body)
        # Chat completions carries the system prompt as the first message
        system_prompt = kwargs.pop("system", None)
        if system_prompt:
            kwargs["messages"].insert(0, {"role": "system", "content": system_prompt})

        try:
            response = await self.client.chat.completions.create(**kwargs)
        except openai.APIStatusError as e:
            logger.error("OpenAI API error", status=e.status_code, error=str(e))
            raise TransportError("OpenAI API error", e.status_code, e.response.text) from e
        except openai.APIError as e:
            logger.error("OpenAI API error", error=str(e))
            raise TransportError(f"OpenAI API error: {e}") from e

        return response.model_dump(mode="json")

    async def aclose(self) -> None:
        await self.client.close()
