"""
Session state for Icebreaker.

A Session is the root object of one facilitated conversation: it owns the
roster, the active phase and the append-only message log.
"""

import logging
from typing import Any, Iterable, List, Optional, Tuple

from icebreaker.orchestrator.conversation_phase import TransitionError, validate_phase_transition
from icebreaker.orchestrator.instructions import DEFAULT_LANGUAGE
from icebreaker.orchestrator.roster import Roster
from icebreaker.protocol.message import (
    ConversationPhase,
    Message,
    MessageRole,
    SessionState,
    create_message,
)


class Session:
    """
    One icebreaker conversation from setup to end.

    The message log only grows: messages are appended in chronological order
    and never edited or removed. The phase only changes along the transitions
    of the phase state machine.
    """

    def __init__(
        self,
        roster: Roster,
        phase: ConversationPhase = ConversationPhase.INTRO_START,
        messages: Optional[Iterable[Message]] = None,
        conversation_id: Optional[str] = None,
        language: str = DEFAULT_LANGUAGE
    ):
        """
        Initialize a session.

        Args:
            roster: An initialized roster
            phase: Active phase
            messages: Previously recorded messages, oldest first
            conversation_id: Identifier in the history store, if persisted
            language: Language of the persona text
        """
        if not roster.is_started:
            raise ValueError("The roster must be initialized before a session starts")

        self.roster = roster
        self._phase = ConversationPhase(phase)
        self._messages: List[Message] = list(messages or [])
        self.conversation_id = conversation_id
        self.language = language
        self.logger = logging.getLogger("icebreaker.orchestrator")

    @classmethod
    def create(
        cls,
        participants: Iterable[Any],
        conversation_id: Optional[str] = None,
        language: str = DEFAULT_LANGUAGE
    ) -> "Session":
        """
        Set up a new session in its initial phase.

        Raises:
            ValidationError: If the participant list is empty or invalid
        """
        roster = Roster()
        roster.initialize(participants)
        return cls(roster, conversation_id=conversation_id, language=language)

    @classmethod
    def from_state(cls, state: SessionState, messages: Iterable[Message]) -> "Session":
        """Rebuild a session from a stored snapshot and its history."""
        roster = Roster.from_state(state.participants, state.speaker_index)
        return cls(
            roster,
            phase=state.phase,
            messages=messages,
            conversation_id=state.conversation_id,
            language=state.language or DEFAULT_LANGUAGE
        )

    @property
    def phase(self) -> ConversationPhase:
        return self._phase

    @property
    def messages(self) -> Tuple[Message, ...]:
        """The message log, oldest first."""
        return tuple(self._messages)

    @property
    def last_message(self) -> Optional[Message]:
        return self._messages[-1] if self._messages else None

    def append_message(self, role: MessageRole, content: str) -> Message:
        """
        Append a message stamped with the current phase.

        Args:
            role: Author of the message
            content: Text of the message

        Returns:
            The appended message
        """
        message = create_message(role, content, self._phase, after=self.last_message)
        self._messages.append(message)
        return message

    def change_phase(self, new_phase: ConversationPhase) -> None:
        """
        Move to a new phase.

        Raises:
            TransitionError: If the phase state machine does not allow the move
        """
        if not validate_phase_transition(self._phase, new_phase):
            raise TransitionError(f"Invalid phase transition: {self._phase.value} -> {new_phase.value}")

        if new_phase != self._phase:
            self.logger.info(f"Phase {self._phase.value} -> {new_phase.value} (conversation {self.conversation_id})")
        self._phase = new_phase

    def to_state(self) -> SessionState:
        """Snapshot the roster and phase for the history store."""
        if self.conversation_id is None:
            raise ValueError("Only persisted sessions can be snapshotted")

        return SessionState(
            conversation_id=self.conversation_id,
            participants=self.roster.participants,
            speaker_index=self.roster.speaker_index,
            phase=self._phase,
            language=self.language
        )
