"""
Provider factory: builds a ChatOrchestrator for a provider and model.

Supports: SAP AI Core and Anthropic (content-block protocol), GitHub Copilot
and OpenAI (function-call protocol).
"""

from ..config import Settings
from ..errors import ConfigurationError
from .orchestrator import ChatOrchestrator
from .protocols import ProtocolKind, get_protocol
from .transports.base import BaseTransport

PROVIDER_MODELS: dict[str, dict[str, ProtocolKind]] = {
    "sap": {
        "bedrock-2023-05-31": ProtocolKind.CONTENT_BLOCK,
        "claude-3-sonnet": ProtocolKind.CONTENT_BLOCK,
        "claude-3-haiku": ProtocolKind.CONTENT_BLOCK,
    },
    "copilot": {
        "claude-sonnet-4": ProtocolKind.FUNCTION_CALL,
        "gpt-4": ProtocolKind.FUNCTION_CALL,
        "gpt-4o": ProtocolKind.FUNCTION_CALL,
    },
    "anthropic": {
        "claude-sonnet-4-20250514": ProtocolKind.CONTENT_BLOCK,
        "claude-opus-4-20250514": ProtocolKind.CONTENT_BLOCK,
        "claude-3-5-haiku-20241022": ProtocolKind.CONTENT_BLOCK,
    },
    "openai": {
        "gpt-4o": ProtocolKind.FUNCTION_CALL,
        "gpt-4.1": ProtocolKind.FUNCTION_CALL,
        "gpt-4o-mini": ProtocolKind.FUNCTION_CALL,
    },
}

# Built-in tool (name, type) per model on the Anthropic API. Models absent
# here keep the tools' own types; an empty mapping sends plain schemas only.
CLAUDE_4_TOOLS: dict[str, tuple[str, str]] = {
    "bash": ("bash", "bash_20250124"),
    "str_replace_editor": ("str_replace_based_edit_tool", "text_editor_20250429"),
}

MODEL_BUILTIN_TOOLS: dict[str, dict[str, tuple[str, str]]] = {
    "claude-sonnet-4-20250514": CLAUDE_4_TOOLS,
    "claude-opus-4-20250514": CLAUDE_4_TOOLS,
    "claude-3-5-haiku-20241022": {},
}

DEFAULT_MODELS: dict[str, str] = {
    "sap": "bedrock-2023-05-31",
    "copilot": "gpt-4",
    "anthropic": "claude-sonnet-4-20250514",
    "openai": "gpt-4o",
}


def resolve_model(provider: str, model: str | None = None) -> tuple[str, ProtocolKind]:
    """Validate a provider/model pair and return the model with its protocol."""
    models = PROVIDER_MODELS.get(provider)
    if models is None:
        raise ConfigurationError(
            f"Unknown provider: {provider}. Supported providers: {', '.join(PROVIDER_MODELS)}"
        )

    model = model or DEFAULT_MODELS[provider]
    if model not in models:
        raise ConfigurationError(
            f"Model {model} is not supported by provider {provider}. "
            f"Supported models: {', '.join(models)}"
        )
    return model, models[model]


def create_transport(provider: str, model: str, settings: Settings) -> BaseTransport:
    """Create the transport for a provider. Raises ConfigurationError on missing credentials."""
    if provider == "sap":
        from .transports.sap import SapTransport
        return SapTransport.from_settings(settings)
    elif provider == "copilot":
        from .transports.copilot import CopilotTransport
        return CopilotTransport.from_settings(settings)
    elif provider == "anthropic":
        from .transports.anthropic import AnthropicTransport
        return AnthropicTransport.from_settings(settings, model)
    elif provider == "openai":
        from .transports.openai import OpenAITransport
        return OpenAITransport.from_settings(settings)
    else:
        raise ConfigurationError(f"Unknown provider: {provider}")


def create_orchestrator(
    provider: str,
    model: str | None,
    settings: Settings,
    system_prompt: str | None = None,
    transport: BaseTransport | None = None,
) -> ChatOrchestrator:
    """Create an orchestrator for the given provider and model.

    Provider routing:
    - sap -> SapTransport, content-block protocol
    - copilot -> CopilotTransport, function-call protocol
    - anthropic -> AnthropicTransport (Anthropic SDK), content-block protocol
    - openai -> OpenAITransport (OpenAI SDK), function-call protocol
    """
    model, kind = resolve_model(provider, model)

    if system_prompt is None:
        from ..agent.prompts import SYSTEM_PROMPT
        system_prompt = SYSTEM_PROMPT

    return ChatOrchestrator(
        protocol=get_protocol(kind),
        transport=transport or create_transport(provider, model, settings),
        model=model,
        system_prompt=system_prompt,
        max_messages=settings.compression_threshold,
        max_tokens=settings.max_tokens,
        builtin_tools=MODEL_BUILTIN_TOOLS.get(model) if kind == ProtocolKind.CONTENT_BLOCK else None,
    )
