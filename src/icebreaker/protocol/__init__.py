"""
Message protocol for Icebreaker

This module defines the messages, participants and session snapshots shared
by the orchestrator, the model adapters and the history stores.
"""

from icebreaker.protocol.message import (
    ConversationPhase,
    Message,
    MessageRole,
    Participant,
    SessionState,
    Turn,
    TurnRole,
    create_message,
)

__all__ = [
    "ConversationPhase",
    "Message",
    "MessageRole",
    "Participant",
    "SessionState",
    "Turn",
    "TurnRole",
    "create_message",
]
