"""
Agent module - the interactive loop and its session state.

Includes:
- AgentLoop: tool execution / input / compression / chat iterations
- AgentSession, SessionStore: persistent conversation sessions
- SlashCommands: /help, /tools, /sessions, /new, /load, /remove, /history
"""

from .commands import SlashCommands
from .loop import AgentLoop, LoopState
from .session import AgentSession, SessionData, SessionStore

__all__ = [
    "AgentLoop",
    "LoopState",
    "AgentSession",
    "SessionData",
    "SessionStore",
    "SlashCommands",
]
