"""
Anthropic adapter implementation for Icebreaker.

This module connects the turn orchestrator with Anthropic's messages API,
translating the provider-neutral turn sequence into Anthropic's format.
"""

from typing import Any, AsyncIterator, Dict, List, Sequence

import anthropic
from anthropic.types import MessageParam

from icebreaker.adapters.base.adapter import (
    EMPTY_TURN_PLACEHOLDER,
    AdapterConfig,
    ConnectionStatus,
    GenerationParams,
    ModelAdapter,
)
from icebreaker.protocol.message import Turn, TurnRole


class AnthropicAdapter(ModelAdapter):
    """Adapter for Anthropic Claude models."""

    provider_name = "anthropic"
    default_model = "claude-3-5-haiku-latest"

    def __init__(self, config: AdapterConfig):
        super().__init__(config)

    async def connect(self) -> bool:
        """Create the Anthropic client."""
        try:
            self.client = anthropic.AsyncAnthropic(
                api_key=self.config.api_key,
                base_url=self.config.base_url,
                timeout=self.config.timeout
            )
            self._connection_status = ConnectionStatus(connected=True)
            return True
        except Exception as e:
            self._connection_status = ConnectionStatus(
                connected=False,
                last_error=str(e)
            )
            return False

    def _convert_turn_role(self, role: TurnRole) -> str:
        """Convert a turn role to an Anthropic message role."""
        return "assistant" if role == TurnRole.FACILITATOR else "user"

    def turns_to_provider_format(
        self,
        turns: Sequence[Turn],
        params: GenerationParams
    ) -> Dict[str, Any]:
        """Convert a turn sequence to Anthropic's format."""
        # Anthropic conversations must open with a user message, so the
        # leading facilitator turns (persona and directive) become the system prompt
        leading: List[str] = []
        position = 0
        while position < len(turns) and turns[position].role == TurnRole.FACILITATOR:
            leading.append(turns[position].text)
            position += 1

        messages: List[MessageParam] = []
        for turn in turns[position:]:
            role = self._convert_turn_role(turn.role)
            text = turn.text or EMPTY_TURN_PLACEHOLDER
            if messages and messages[-1]["role"] == role:
                # Merge consecutive turns of the same role
                messages[-1]["content"] = f"{messages[-1]['content']}\n{text}"
            else:
                messages.append({"role": role, "content": text})

        return {
            "model": self.model,
            "system": "\n\n".join(leading),
            "messages": messages,
            "temperature": params.temperature,
            "top_k": params.top_k,
            "max_tokens": params.max_output_tokens,
        }

    async def _open_stream(self, request: Dict[str, Any]) -> AsyncIterator[str]:
        async with self.client.messages.stream(**request) as stream:
            async for text in stream.text_stream:
                yield text
