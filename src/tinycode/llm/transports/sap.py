"""
SAP AI Core transport (content-block deployments such as Bedrock Claude).
"""

import json
import time
from pathlib import Path
from typing import Any

import httpx
import structlog

from ...config import Settings
from ...errors import ConfigurationError, TransportError
from .base import BaseTransport

logger = structlog.get_logger()

LOCAL_SERVICE_KEY = Path.home() / ".tinycode" / ".aicore.json"

# Refresh this many seconds before the token actually expires
TOKEN_EXPIRY_MARGIN = 10


class SapTransport(BaseTransport):
    """Client-credentials OAuth plus deployment invoke endpoint."""

    def __init__(
        self,
        service_url: str,
        auth_url: str,
        client_id: str,
        client_secret: str,
        deployment_id: str,
        resource_group: str = "default",
        timeout: float = 300,
        client: httpx.AsyncClient | None = None,
    ):
        self.service_url = service_url.rstrip("/")
        self.auth_url = auth_url.rstrip("/")
        self.client_id = client_id
        self.client_secret = client_secret
        self.deployment_id = deployment_id
        self.resource_group = resource_group
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self._token: str | None = None
        self._token_expires = 0.0

    @property
    def name(self) -> str:
        return "sap"

    @classmethod
    def from_settings(cls, settings: Settings) -> "SapTransport":
        raw = settings.aicore_service_key
        if not raw and LOCAL_SERVICE_KEY.exists():
            raw = LOCAL_SERVICE_KEY.read_text()
        if not raw:
            raise ConfigurationError(
                f"SAP AI Core service key missing: set AICORE_SERVICE_KEY or create {LOCAL_SERVICE_KEY}"
            )
        try:
            key = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"SAP AI Core service key is not valid JSON: {e}") from e

        deployment_id = settings.deployment_id or key.get("deploymentid", "")
        if not deployment_id:
            raise ConfigurationError("SAP AI Core deployment id missing: set DEPLOYMENT_ID")

        return cls(
            service_url=(key.get("serviceurls") or {}).get("AI_API_URL", ""),
            auth_url=key.get("url", ""),
            client_id=key.get("clientid", ""),
            client_secret=key.get("clientsecret", ""),
            deployment_id=deployment_id,
            resource_group=settings.resource_group,
            timeout=settings.request_timeout_seconds,
        )

    async def _authenticate(self) -> str:
        if self._token and time.monotonic() < self._token_expires:
            return self._token

        try:
            response = await self.client.post(
                f"{self.auth_url}/oauth/token",
                data={"client_id": self.client_id, "grant_type": "client_credentials"},
                auth=(self.client_id, self.client_secret),
            )
        except httpx.HTTPError as e:
            raise TransportError(f"SAP AI authentication failed: {e}") from e

        if response.status_code >= 400:
            raise TransportError("SAP AI authentication failed", response.status_code, response.text)

        data = response.json()
        self._token = data["access_token"]
        self._token_expires = time.monotonic() + float(data.get("expires_in", 0)) - TOKEN_EXPIRY_MARGIN
        logger.debug("SAP AI token refreshed", expires_in=data.get("expires_in"))
        return self._token

    async def send(self, body: str) -> dict[str, Any]:
        token = await self._authenticate()
        url = f"{self.service_url}/v2/inference/deployments/{self.deployment_id}/invoke"

        try:
            response = await self.client.post(
                url,
                content=body,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {token}",
                    "AI-Resource-Group": self.resource_group,
                },
            )
        except httpx.HTTPError as e:
            raise TransportError(f"SAP AI request failed: {e}") from e

        if response.status_code >= 400:
            raise TransportError("SAP AI request failed", response.status_code, response.text)

        return response.json()

    async def aclose(self) -> None:
        await self.client.aclose()
