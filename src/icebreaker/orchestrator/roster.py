"""
Roster implementation for Icebreaker.

This module defines the ordered participant list of a session together with
the cursor that tracks whose turn it is to introduce themselves.
"""

from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError as PydanticValidationError

from icebreaker.protocol.message import Participant


class ValidationError(ValueError):
    """Raised when the roster is set up with missing or invalid participants."""
    pass


class Roster:
    """
    Ordered participants with a forward-only turn cursor.

    The Roster is responsible for:
    - Validating the participant list at session setup
    - Reporting whose turn it is
    - Advancing the cursor when a participant has finished

    The cursor starts at -1 ("not started"), becomes 0 on ``initialize`` and
    only ever grows. Advancing past the last participant is allowed; from then
    on there is no current speaker and the introductions are complete.
    """

    NOT_STARTED = -1

    def __init__(self):
        """Initialize an empty roster that has not started yet."""
        self._participants: List[Participant] = []
        self._speaker_index = self.NOT_STARTED

    @classmethod
    def from_state(cls, participants: Iterable[Participant], speaker_index: int) -> "Roster":
        """
        Rebuild a roster from a persisted snapshot.

        Args:
            participants: Participants in speaking order
            speaker_index: The persisted cursor

        Returns:
            A roster positioned at ``speaker_index``
        """
        roster = cls()
        roster.initialize(participants)
        if speaker_index < cls.NOT_STARTED:
            raise ValidationError(f"Invalid speaker index {speaker_index}")
        roster._speaker_index = speaker_index
        return roster

    @property
    def participants(self) -> List[Participant]:
        return list(self._participants)

    @property
    def speaker_index(self) -> int:
        return self._speaker_index

    @property
    def is_started(self) -> bool:
        return self._speaker_index != self.NOT_STARTED

    @property
    def is_exhausted(self) -> bool:
        """True once every participant has had their turn."""
        return bool(self._participants) and self._speaker_index >= len(self._participants)

    def __len__(self) -> int:
        return len(self._participants)

    def initialize(self, participants: Iterable[Any]) -> None:
        """
        Set the participants and hand the floor to the first one.

        Args:
            participants: Participant objects or mappings with ``name`` and
                ``affiliation`` keys

        Raises:
            ValidationError: If the list is empty or an entry is incomplete
        """
        validated: List[Participant] = []
        for position, entry in enumerate(participants or []):
            try:
                if isinstance(entry, Participant):
                    validated.append(entry)
                elif isinstance(entry, dict):
                    validated.append(Participant(**entry))
                else:
                    validated.append(Participant.model_validate(entry, from_attributes=True))
            except PydanticValidationError as e:
                raise ValidationError(f"Participant #{position + 1} is invalid: {e}") from e

        if not validated:
            raise ValidationError("At least one participant is required")

        self._participants = validated
        self._speaker_index = 0

    def current_speaker(self) -> Optional[Participant]:
        """
        Get the participant whose turn it is.

        Returns:
            The current participant, or None before start and after the last one
        """
        if 0 <= self._speaker_index < len(self._participants):
            return self._participants[self._speaker_index]
        return None

    def next_speaker(self) -> Optional[Participant]:
        """Get the participant after the current one, if there is one."""
        upcoming = self._speaker_index + 1
        if 0 <= upcoming < len(self._participants):
            return self._participants[upcoming]
        return None

    def advance(self) -> int:
        """
        Move the cursor to the next participant.

        There is no upper bound: callers check ``is_exhausted`` rather than
        relying on the cursor to clamp or wrap around.

        Returns:
            The new speaker index
        """
        self._speaker_index += 1
        return self._speaker_index

    def to_dict(self) -> Dict[str, Any]:
        """Serializable view of the roster."""
        return {
            "participants": [p.model_dump() for p in self._participants],
            "speaker_index": self._speaker_index,
        }
