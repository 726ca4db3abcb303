"""
Conversation Phase Management for Icebreaker.

This module defines the phase state machine of an icebreaker session: which
phase follows which, and the closing phrases that end an introduction.
"""

from typing import Dict, Iterable, List, Set, Tuple

from icebreaker.protocol.message import ConversationPhase


class TransitionError(Exception):
    """Exception raised for invalid phase transitions."""
    pass


# Phrases that mark the end of a self-introduction
JAPANESE_CLOSING_KEYWORDS: Tuple[str, ...] = ("以上です", "終わりです", "よろしく", "お願いします")
ENGLISH_CLOSING_KEYWORDS: Tuple[str, ...] = (
    "that's all",
    "That's all",
    "finished",
    "thank you",
    "Thank you",
    "please",
)
DEFAULT_CLOSING_KEYWORDS: Tuple[str, ...] = JAPANESE_CLOSING_KEYWORDS + ENGLISH_CLOSING_KEYWORDS

# Unconditional single-step advances
_LINEAR_SUCCESSORS: Dict[ConversationPhase, ConversationPhase] = {
    ConversationPhase.INTRO_START: ConversationPhase.INTRO_REACTING,
    ConversationPhase.INTRO_NEXT_PERSON: ConversationPhase.ICEBREAK_START,
    ConversationPhase.ICEBREAK_START: ConversationPhase.RANDOM_THEME,
    ConversationPhase.RANDOM_THEME: ConversationPhase.DEEP_DIVE,
    ConversationPhase.DEEP_DIVE: ConversationPhase.DEEP_DIVE,
}

# Define valid phase transitions
PHASE_TRANSITIONS: Dict[ConversationPhase, Set[ConversationPhase]] = {
    ConversationPhase.INTRO_START: {ConversationPhase.INTRO_REACTING},
    ConversationPhase.INTRO_REACTING: {ConversationPhase.INTRO_REACTING, ConversationPhase.INTRO_NEXT_PERSON},
    ConversationPhase.INTRO_NEXT_PERSON: {ConversationPhase.ICEBREAK_START},
    ConversationPhase.ICEBREAK_START: {ConversationPhase.RANDOM_THEME},
    ConversationPhase.RANDOM_THEME: {ConversationPhase.DEEP_DIVE},
    ConversationPhase.DEEP_DIVE: {ConversationPhase.DEEP_DIVE},
}


def contains_closing_keyword(
    utterance: str,
    closing_keywords: Iterable[str] = DEFAULT_CLOSING_KEYWORDS
) -> bool:
    """Case-sensitive substring check against the closing phrases."""
    return any(keyword in utterance for keyword in closing_keywords)


def next_phase(
    current_phase: ConversationPhase,
    last_user_utterance: str,
    closing_keywords: Iterable[str] = DEFAULT_CLOSING_KEYWORDS
) -> ConversationPhase:
    """
    Compute the phase that follows the current one.

    Only ``intro_reacting`` looks at the utterance: it stays put until the
    speaker says one of the closing phrases. Every other phase advances one
    step regardless of what was said, and ``deep_dive`` maps to itself.

    Args:
        current_phase: The phase the session is in
        last_user_utterance: The utterance that was just processed
        closing_keywords: Phrases that end an introduction

    Returns:
        The next phase
    """
    if current_phase == ConversationPhase.INTRO_REACTING:
        if contains_closing_keyword(last_user_utterance or "", closing_keywords):
            return ConversationPhase.INTRO_NEXT_PERSON
        return ConversationPhase.INTRO_REACTING

    return _LINEAR_SUCCESSORS[ConversationPhase(current_phase)]


def enters_next_speaker(previous_phase: ConversationPhase, new_phase: ConversationPhase) -> bool:
    """
    Whether a transition hands the floor to the next participant.

    Turn-taking and phases are coupled only here: the roster advances when the
    session moves into ``intro_next_person``.
    """
    return (
        new_phase == ConversationPhase.INTRO_NEXT_PERSON
        and previous_phase != ConversationPhase.INTRO_NEXT_PERSON
    )


def validate_phase_transition(current_phase: ConversationPhase, new_phase: ConversationPhase) -> bool:
    """
    Validate whether a phase transition is allowed.

    Args:
        current_phase: The current conversation phase
        new_phase: The proposed new phase

    Returns:
        True if the transition is valid, False otherwise
    """
    return new_phase in PHASE_TRANSITIONS.get(current_phase, set())


def get_valid_next_phases(current_phase: ConversationPhase) -> List[ConversationPhase]:
    """
    Get all phases that can follow the current phase.

    Args:
        current_phase: The current conversation phase

    Returns:
        List of valid next phases, in declaration order
    """
    allowed = PHASE_TRANSITIONS.get(current_phase, set())
    return [phase for phase in ConversationPhase if phase in allowed]
