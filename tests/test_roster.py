"""
Tests for the speaker roster.
"""

import pytest

from icebreaker.orchestrator.roster import Roster, ValidationError
from icebreaker.protocol.message import Participant


def create_test_roster(count: int = 3) -> Roster:
    """Helper function to create an initialized roster."""
    roster = Roster()
    roster.initialize([
        {"name": f"Person {i}", "affiliation": f"Team {i}"}
        for i in range(count)
    ])
    return roster


def test_initialize_starts_with_first_participant():
    roster = create_test_roster()

    assert roster.is_started
    assert roster.speaker_index == 0
    assert roster.current_speaker() == Participant(name="Person 0", affiliation="Team 0")
    assert roster.next_speaker().name == "Person 1"
    assert len(roster) == 3


def test_uninitialized_roster():
    roster = Roster()

    assert not roster.is_started
    assert not roster.is_exhausted
    assert roster.current_speaker() is None


def test_initialize_rejects_empty_list():
    with pytest.raises(ValidationError):
        Roster().initialize([])


@pytest.mark.parametrize("entry", [
    {"name": "", "affiliation": "U Tokyo"},
    {"name": "Yamada", "affiliation": "   "},
    {"name": "Yamada"},
])
def test_initialize_rejects_incomplete_participant(entry):
    roster = Roster()
    with pytest.raises(ValidationError):
        roster.initialize([entry])
    assert not roster.is_started


def test_initialize_strips_whitespace():
    roster = Roster()
    roster.initialize([Participant(name="  Yamada ", affiliation=" U Tokyo")])

    assert roster.current_speaker().name == "Yamada"
    assert roster.current_speaker().affiliation == "U Tokyo"


def test_advance_is_monotonic():
    roster = create_test_roster(2)

    for expected in range(1, 6):
        assert roster.advance() == expected
        assert roster.speaker_index == expected


def test_advance_past_end_neither_clamps_nor_wraps():
    roster = create_test_roster(1)

    roster.advance()
    assert roster.is_exhausted
    assert roster.current_speaker() is None
    assert roster.next_speaker() is None

    roster.advance()
    assert roster.speaker_index == 2
    assert roster.current_speaker() is None


def test_last_speaker_has_no_next():
    roster = create_test_roster(2)
    roster.advance()

    assert roster.current_speaker().name == "Person 1"
    assert roster.next_speaker() is None
    assert not roster.is_exhausted


def test_from_state():
    participants = [Participant(name="A", affiliation="X"), Participant(name="B", affiliation="Y")]
    roster = Roster.from_state(participants, 1)

    assert roster.current_speaker().name == "B"
    assert roster.to_dict() == {
        "participants": [{"name": "A", "affiliation": "X"}, {"name": "B", "affiliation": "Y"}],
        "speaker_index": 1,
    }

    with pytest.raises(ValidationError):
        Roster.from_state(participants, -2)
