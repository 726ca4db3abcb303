"""
Conversation Orchestrator for Icebreaker

This module provides the phase state machine, the speaker roster and the turn
orchestrator that together drive a facilitated session.
"""

from icebreaker.orchestrator.conversation_phase import TransitionError, next_phase
from icebreaker.orchestrator.roster import Roster, ValidationError
from icebreaker.orchestrator.session import Session
from icebreaker.orchestrator.turn_orchestrator import (
    OrchestratorConfig,
    OrchestratorState,
    TurnOrchestrator,
)

__all__ = [
    "OrchestratorConfig",
    "OrchestratorState",
    "Roster",
    "Session",
    "TransitionError",
    "TurnOrchestrator",
    "ValidationError",
    "next_phase",
]
