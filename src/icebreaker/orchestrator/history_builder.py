"""
History Builder for Icebreaker.

Assembles the exchange handed to a language model: the persona, the
directive for the current phase, then the whole conversation so far.
"""

from typing import List, Optional, Sequence

from icebreaker.orchestrator.instructions import instruction_for, system_prompt
from icebreaker.protocol.message import ConversationPhase, Message, MessageRole, Turn, TurnRole

_ROLE_MAPPING = {
    MessageRole.ASSISTANT: TurnRole.FACILITATOR,
    MessageRole.USER: TurnRole.PARTICIPANT,
}


def build_prompt(
    messages: Sequence[Message],
    phase: ConversationPhase,
    language: Optional[str] = None,
    speaker_line: str = ""
) -> List[Turn]:
    """
    Build the turn sequence for a model invocation.

    The full history is replayed in chronological order. Providers require the
    exchange to end on a participant turn, so an empty participant turn is
    appended whenever the last entry belongs to the facilitator (for example
    before anyone has spoken).

    Args:
        messages: The conversation log, oldest first
        phase: Phase whose directive applies to this invocation
        language: Language of the persona and directive text
        speaker_line: Optional roster context appended to the directive

    Returns:
        The ordered list of turns
    """
    directive = instruction_for(phase, language)
    if speaker_line:
        directive = f"{directive}\n{speaker_line}"

    turns = [
        Turn(role=TurnRole.FACILITATOR, text=system_prompt(language)),
        Turn(role=TurnRole.FACILITATOR, text=directive),
    ]
    turns.extend(
        Turn(role=_ROLE_MAPPING[MessageRole(message.role)], text=message.content)
        for message in messages
    )

    if turns[-1].role == TurnRole.FACILITATOR:
        turns.append(Turn(role=TurnRole.PARTICIPANT, text=""))

    return turns
