"""
OpenAI adapter implementation for Icebreaker.

This module connects the turn orchestrator with OpenAI's chat completions API,
translating the provider-neutral turn sequence into chat messages.
"""

import time
from typing import Any, AsyncIterator, Dict, List, Sequence

from openai import AsyncOpenAI
from openai.types.chat import ChatCompletionMessageParam

from icebreaker.adapters.base.adapter import (
    AdapterConfig,
    ConnectionStatus,
    GenerationParams,
    ModelAdapter,
)
from icebreaker.protocol.message import Turn, TurnRole


class OpenAIAdapter(ModelAdapter):
    """Adapter for OpenAI models."""

    provider_name = "openai"
    default_model = "gpt-4o-mini"

    def __init__(self, config: AdapterConfig):
        super().__init__(config)

    async def connect(self) -> bool:
        """Establish connection to OpenAI API."""
        try:
            self.client = AsyncOpenAI(
                api_key=self.config.api_key,
                organization=self.config.organization_id,
                base_url=self.config.base_url,
                timeout=self.config.timeout
            )

            # Test connection by listing models
            start_time = time.time()
            await self.client.models.list()
            end_time = time.time()

            self._connection_status = ConnectionStatus(
                connected=True,
                latency_ms=(end_time - start_time) * 1000
            )
            return True
        except Exception as e:
            self._connection_status = ConnectionStatus(
                connected=False,
                last_error=str(e)
            )
            return False

    def turns_to_provider_format(
        self,
        turns: Sequence[Turn],
        params: GenerationParams
    ) -> Dict[str, Any]:
        """Convert a turn sequence to OpenAI's chat format."""
        messages: List[ChatCompletionMessageParam] = []

        # The persona leads the exchange as the system message
        for index, turn in enumerate(turns):
            if index == 0 and turn.role == TurnRole.FACILITATOR:
                messages.append({"role": "system", "content": turn.text})
            elif turn.role == TurnRole.FACILITATOR:
                messages.append({"role": "assistant", "content": turn.text})
            else:
                messages.append({"role": "user", "content": turn.text})

        # OpenAI has no top_k parameter
        return {
            "model": self.model,
            "messages": messages,
            "temperature": params.temperature,
            "top_p": params.top_p,
            "max_tokens": params.max_output_tokens,
            "stream": True,
        }

    async def _open_stream(self, request: Dict[str, Any]) -> AsyncIterator[str]:
        stream = await self.client.chat.completions.create(**request)
        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta
            if delta and delta.content:
                yield delta.content
