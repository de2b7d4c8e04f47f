"""
LLM module: message model, protocol adapters, transports and orchestration.
"""

from .base import (
    ChatResult,
    CompactionState,
    Message,
    Role,
    TextBlock,
    ToolCall,
    ToolResultBlock,
    ToolUseBlock,
)
from .factory import DEFAULT_MODELS, PROVIDER_MODELS, create_orchestrator
from .orchestrator import ChatOrchestrator
from .protocols import ProtocolKind, get_protocol

__all__ = [
    "ChatResult",
    "CompactionState",
    "Message",
    "Role",
    "TextBlock",
    "ToolCall",
    "ToolResultBlock",
    "ToolUseBlock",
    "ChatOrchestrator",
    "DEFAULT_MODELS",
    "PROVIDER_MODELS",
    "create_orchestrator",
    "ProtocolKind",
    "get_protocol",
]
