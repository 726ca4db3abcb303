"""
Message Protocol for Icebreaker

This module defines the data exchanged inside an icebreaker session: the
participants taking part, the messages of the conversation log, and the
provider-neutral turns handed to a language model.

The message protocol supports:
- Validated, immutable participant records
- An append-only, chronologically ordered message log
- Phase attribution for every message
- A role-attributed exchange format independent of any AI provider
"""

import time
from enum import Enum
from typing import List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ConversationPhase(str, Enum):
    """
    Facilitation stages of an icebreaker session.

    The phase decides which directive the facilitator persona follows.
    """

    INTRO_START = "intro_start"              # Greet everyone, ask the first person to introduce themselves
    INTRO_REACTING = "intro_reacting"        # React to the introduction in progress
    INTRO_NEXT_PERSON = "intro_next_person"  # Hand over to the next participant
    ICEBREAK_START = "icebreak_start"        # Announce the icebreaker corner
    RANDOM_THEME = "random_theme"            # Talk about a random theme
    DEEP_DIVE = "deep_dive"                  # Open conversation, no further transitions


class MessageRole(str, Enum):
    """Roles that can author a message in the conversation log."""

    USER = "user"            # Participant speech or typed input
    ASSISTANT = "assistant"  # Facilitator persona replies


class TurnRole(str, Enum):
    """Roles of the entries in an exchange sent to a language model."""

    FACILITATOR = "facilitator"  # Persona, directives and persona replies
    PARTICIPANT = "participant"  # Anything said by the humans in the room


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class Participant(BaseModel):
    """
    A person taking part in the session.

    Participants are created once at setup and never change afterwards.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Name the facilitator addresses the participant by")
    affiliation: str = Field(..., description="University, company or team of the participant")

    @field_validator('name', 'affiliation')
    def must_not_be_empty(cls, v, info):
        """Validate that the field is not empty."""
        if not v or not v.strip():
            raise ValueError(f"Participant {info.field_name} cannot be empty")
        return v.strip()


class Message(BaseModel):
    """
    A single entry of the conversation log.

    Messages are created by the turn orchestrator for every utterance and every
    completed reply. They are never edited or deleted once appended.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4, description="Unique identifier for this message")
    role: MessageRole = Field(..., description="Who authored the message")
    content: str = Field(..., description="Text of the message")
    timestamp: int = Field(default_factory=now_ms, description="Creation time in epoch milliseconds")
    phase: ConversationPhase = Field(..., description="Conversation phase when the message was created")


class Turn(BaseModel):
    """One role-attributed entry of the exchange sent to a language model."""

    role: TurnRole
    text: str


class SessionState(BaseModel):
    """
    Durable snapshot of a session's turn-taking state.

    Persisting this alongside the message log lets a conversation be resumed
    with the same roster cursor and phase.
    """

    conversation_id: str = Field(..., description="Identifier of the persisted conversation")
    participants: List[Participant] = Field(..., description="Roster in speaking order")
    speaker_index: int = Field(default=0, description="Roster cursor")
    phase: ConversationPhase = Field(default=ConversationPhase.INTRO_START, description="Active phase")
    language: Optional[str] = Field(None, description="Language of the persona text")


def create_message(
    role: MessageRole,
    content: str,
    phase: ConversationPhase,
    after: Optional[Message] = None
) -> Message:
    """
    Create a message that sorts after the given previous message.

    Args:
        role: Author of the message
        content: Text content
        phase: Phase at the time of creation
        after: The last message of the log, if any

    Returns:
        A new Message whose timestamp is never earlier than ``after``'s
    """
    timestamp = now_ms()
    if after is not None and timestamp < after.timestamp:
        timestamp = after.timestamp
    return Message(role=role, content=content, phase=phase, timestamp=timestamp)
