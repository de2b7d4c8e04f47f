"""
Tests for backend transports.
"""

import json
import os
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from tinycode.config import Settings
from tinycode.errors import ConfigurationError, TransportError
from tinycode.llm.transports.anthropic import AnthropicTransport
from tinycode.llm.transports.copilot import CopilotTransport
from tinycode.llm.transports.openai import OpenAITransport
from tinycode.llm.transports.sap import SapTransport

SERVICE_KEY = {
    "clientid": "client",
    "clientsecret": "secret",
    "url": "https://auth.example.com",
    "serviceurls": {"AI_API_URL": "https://ai.example.com"},
}


def _sap(handler) -> SapTransport:
    return SapTransport(
        service_url="https://ai.example.com",
        auth_url="https://auth.example.com",
        client_id="client",
        client_secret="secret",
        deployment_id="d123",
        resource_group="rg",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


@pytest.mark.asyncio
async def test_sap_authenticates_once_and_invokes_deployment():
    """Test the OAuth exchange, token caching and invoke request."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if request.url.path == "/oauth/token":
            return httpx.Response(200, json={"access_token": "tok", "expires_in": 3600})
        return httpx.Response(200, json={"content": [], "stop_reason": "end_turn"})

    transport = _sap(handler)
    body = json.dumps({"anthropic_version": "bedrock-2023-05-31", "messages": []})

    assert await transport.send(body) == {"content": [], "stop_reason": "end_turn"}
    await transport.send(body)

    token_calls = [c for c in calls if c.url.path == "/oauth/token"]
    invoke_calls = [c for c in calls if c.url.path != "/oauth/token"]
    assert len(token_calls) == 1
    assert len(invoke_calls) == 2
    invoke = invoke_calls[0]
    assert str(invoke.url) == "https://ai.example.com/v2/inference/deployments/d123/invoke"
    assert invoke.headers["Authorization"] == "Bearer tok"
    assert invoke.headers["AI-Resource-Group"] == "rg"
    assert json.loads(invoke.content) == json.loads(body)


@pytest.mark.asyncio
async def test_sap_error_status():
    """Test that a non-success status becomes a TransportError with the body."""
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/oauth/token":
            return httpx.Response(200, json={"access_token": "tok", "expires_in": 3600})
        return httpx.Response(429, text="slow down")

    with pytest.raises(TransportError) as exc_info:
        await _sap(handler).send("{}")

    assert exc_info.value.status_code == 429
    assert exc_info.value.body == "slow down"
    assert "429" in str(exc_info.value)


@pytest.mark.asyncio
async def test_sap_connection_error():
    """Test that connectivity failures become TransportError."""
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(TransportError):
        await _sap(handler).send("{}")


def test_sap_from_settings_reads_service_key():
    """Test building the SAP transport from the service key JSON."""
    with patch.dict(os.environ, {}, clear=True):
        settings = Settings(_env_file=None, aicore_service_key=json.dumps(SERVICE_KEY), deployment_id="d1")

    transport = SapTransport.from_settings(settings)

    assert transport.service_url == "https://ai.example.com"
    assert transport.auth_url == "https://auth.example.com"
    assert transport.client_id == "client"
    assert transport.deployment_id == "d1"


def test_sap_from_settings_invalid_json():
    """Test a malformed service key."""
    with patch.dict(os.environ, {}, clear=True):
        settings = Settings(_env_file=None, aicore_service_key="{not json")

    with pytest.raises(ConfigurationError, match="not valid JSON"):
        SapTransport.from_settings(settings)


@pytest.mark.asyncio
async def test_copilot_exchanges_token_and_posts():
    """Test the Copilot token exchange and chat request headers."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if request.method == "GET":
            return httpx.Response(200, json={"token": "cop", "expires_at": 4102444800})
        return httpx.Response(200, json={"choices": []})

    transport = CopilotTransport(
        github_token="gho",
        chat_url="https://api.githubcopilot.com/chat/completions",
        token_url="https://api.github.com/copilot_internal/v2/token",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )

    assert await transport.send('{"messages": []}') == {"choices": []}
    await transport.send('{"messages": []}')

    assert [c.method for c in calls] == ["GET", "POST", "POST"]
    assert calls[0].headers["Authorization"] == "Bearer gho"
    assert calls[1].headers["Authorization"] == "Bearer cop"
    assert calls[1].headers["Editor-Version"] == "vscode/1.99.3"


@pytest.mark.asyncio
async def test_copilot_token_failure():
    """Test a rejected GitHub token."""
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, text="bad credentials")

    transport = CopilotTransport(
        github_token="gho",
        chat_url="https://chat.example.com",
        token_url="https://token.example.com",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )

    with pytest.raises(TransportError) as exc_info:
        await transport.send("{}")
    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_anthropic_transport_replaces_version_tag():
    """Test that the SDK call gets the model name instead of the version tag."""
    transport = AnthropicTransport(api_key="key", model="claude-sonnet-4-20250514")
    response = MagicMock()
    response.model_dump.return_value = {"content": [], "stop_reason": "end_turn"}
    transport.client = MagicMock()
    transport.client.messages.create = AsyncMock(return_value=response)

    body = json.dumps({"anthropic_version": "bedrock-2023-05-31", "system": "S", "max_tokens": 10, "messages": []})
    result = await transport.send(body)

    kwargs = transport.client.messages.create.await_args.kwargs
    assert "anthropic_version" not in kwargs
    assert kwargs["model"] == "claude-sonnet-4-20250514"
    assert kwargs["system"] == "S"
    assert result == {"content": [], "stop_reason": "end_turn"}


@pytest.mark.asyncio
async def test_openai_transport_moves_system_prompt():
    """Test that the system text becomes the leading system message."""
    transport = OpenAITransport(api_key="key")
    response = MagicMock()
    response.model_dump.return_value = {"choices": []}
    transport.client = MagicMock()
    transport.client.chat.completions.create = AsyncMock(return_value=response)

    body = json.dumps({"model": "gpt-4o", "system": "S", "max_tokens": 10, "messages": [{"role": "user", "content": "hi"}]})
    await transport.send(body)

    kwargs = transport.client.chat.completions.create.await_args.kwargs
    assert "system" not in kwargs
    assert kwargs["messages"] == [{"role": "system", "content": "S"}, {"role": "user", "content": "hi"}]
    assert kwargs["model"] == "gpt-4o"


@pytest.mark.asyncio
async def test_openai_transport_maps_sdk_errors():
    """Test that SDK connection errors surface as TransportError."""
    import openai

    transport = OpenAITransport(api_key="key")
    transport.client = MagicMock()
    transport.client.chat.completions.create = AsyncMock(
        side_effect=openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com"))
    )

    with pytest.raises(TransportError):
        await transport.send(json.dumps({"model": "gpt-4o", "messages": []}))
