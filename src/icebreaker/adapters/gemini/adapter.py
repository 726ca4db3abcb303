"""
Gemini adapter implementation for Icebreaker.

This module connects the turn orchestrator with Google's Gemini models through
the google-genai SDK, translating the provider-neutral turn sequence into
Gemini contents.
"""

from typing import Any, AsyncIterator, Dict, Sequence

from google import genai
from google.genai import types as genai_types

from icebreaker.adapters.base.adapter import (
    EMPTY_TURN_PLACEHOLDER,
    AdapterConfig,
    ConnectionStatus,
    GenerationParams,
    ModelAdapter,
)
from icebreaker.protocol.message import Turn, TurnRole


class GeminiAdapter(ModelAdapter):
    """Adapter for Google Gemini models."""

    provider_name = "gemini"
    default_model = "gemini-2.5-flash"

    def __init__(self, config: AdapterConfig):
        super().__init__(config)

    async def connect(self) -> bool:
        """Create the Gemini client."""
        if not self.config.api_key or not self.config.api_key.strip():
            self._connection_status = ConnectionStatus(
                connected=False,
                last_error="Missing Gemini API key"
            )
            return False

        try:
            http_options = genai_types.HttpOptions(
                base_url=self.config.base_url,
                timeout=int(self.config.timeout * 1000)
            )
            self.client = genai.Client(api_key=self.config.api_key.strip(), http_options=http_options)
            self._connection_status = ConnectionStatus(connected=True)
            return True
        except Exception as e:
            self._connection_status = ConnectionStatus(
                connected=False,
                last_error=str(e)
            )
            return False

    def _convert_turn_role(self, role: TurnRole) -> str:
        """Convert a turn role to a Gemini content role."""
        return "model" if role == TurnRole.FACILITATOR else "user"

    def turns_to_provider_format(
        self,
        turns: Sequence[Turn],
        params: GenerationParams
    ) -> Dict[str, Any]:
        """Convert a turn sequence to Gemini's request format."""
        contents = [
            genai_types.Content(
                role=self._convert_turn_role(turn.role),
                parts=[genai_types.Part(text=turn.text or EMPTY_TURN_PLACEHOLDER)]
            )
            for turn in turns
        ]

        return {
            "model": self.model,
            "contents": contents,
            "config": genai_types.GenerateContentConfig(
                temperature=params.temperature,
                top_k=params.top_k,
                top_p=params.top_p,
                max_output_tokens=params.max_output_tokens,
            ),
        }

    async def _open_stream(self, request: Dict[str, Any]) -> AsyncIterator[str]:
        stream = await self.client.aio.models.generate_content_stream(**request)
        async for chunk in stream:
            if chunk.text:
                yield chunk.text
