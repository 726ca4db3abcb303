"""
Base adapter interface for Icebreaker.

This module defines the base adapter interface that every language model
provider adapter implements, so that the turn orchestrator can stream a
facilitator reply without knowing which provider produces it.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from pydantic import BaseModel

from icebreaker.protocol.message import Turn

logger = logging.getLogger("icebreaker.adapters")

# Some providers reject empty text parts
EMPTY_TURN_PLACEHOLDER = "..."


class ProviderUnavailable(Exception):
    """Raised when no provider is configured or a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


class AdapterConfig(BaseModel):
    """Configuration for a language model adapter."""

    api_key: str
    model: Optional[str] = None
    base_url: Optional[str] = None
    organization_id: Optional[str] = None
    timeout: float = 60.0


class GenerationParams(BaseModel):
    """Sampling parameters sent with every reply request."""

    temperature: float = 0.7
    top_k: int = 40
    top_p: float = 0.95
    max_output_tokens: int = 1024


class ConnectionStatus(BaseModel):
    """Status of a connection to an AI service provider."""

    connected: bool
    last_error: Optional[str] = None
    latency_ms: Optional[float] = None
    rate_limited: bool = False


class ModelAdapter(ABC):
    """Base interface for language model adapters."""

    provider_name = "base"
    default_model = ""

    def __init__(self, config: AdapterConfig):
        self.config = config
        self.client = None
        self._connection_status = ConnectionStatus(connected=False)

    @property
    def connection_status(self) -> ConnectionStatus:
        """Get the current connection status."""
        return self._connection_status

    @property
    def model(self) -> str:
        return self.config.model or self.default_model

    @abstractmethod
    async def connect(self) -> bool:
        """Create the provider client."""
        pass

    async def disconnect(self) -> bool:
        """Release the provider client."""
        self.client = None
        self._connection_status = ConnectionStatus(connected=False)
        return True

    @abstractmethod
    def turns_to_provider_format(
        self,
        turns: Sequence[Turn],
        params: GenerationParams
    ) -> Dict[str, Any]:
        """
        Convert a turn sequence into the provider's request format.

        Args:
            turns: The exchange built by the history builder
            params: Sampling parameters

        Returns:
            Keyword arguments for the provider's streaming call
        """
        pass

    @abstractmethod
    def _open_stream(self, request: Dict[str, Any]) -> AsyncIterator[str]:
        """Yield text fragments for a prepared request."""
        pass

    async def stream_reply(
        self,
        turns: Sequence[Turn],
        params: Optional[GenerationParams] = None
    ) -> AsyncIterator[str]:
        """
        Stream a facilitator reply for the given exchange.

        Args:
            turns: The exchange built by the history builder
            params: Sampling parameters, defaults when omitted

        Yields:
            Text fragments in arrival order

        Raises:
            ProviderUnavailable: If the client cannot be created or the call fails
        """
        if not self.client or not self._connection_status.connected:
            await self.connect()

        if not self._connection_status.connected:
            raise ProviderUnavailable(
                self.provider_name,
                f"Not connected: {self._connection_status.last_error}"
            )

        request = self.turns_to_provider_format(turns, params or GenerationParams())

        start_time = time.time()
        first_fragment = True
        try:
            async for fragment in self._open_stream(request):
                if first_fragment:
                    self._connection_status.latency_ms = (time.time() - start_time) * 1000
                    first_fragment = False
                if fragment:
                    yield fragment
        except ProviderUnavailable:
            raise
        except Exception as e:
            # Update connection status with error
            self._connection_status.last_error = str(e)
            if "rate limit" in str(e).lower():
                self._connection_status.rate_limited = True
            logger.warning(f"{self.provider_name} stream failed: {e}")
            raise ProviderUnavailable(self.provider_name, f"API call failed: {e}") from e

    async def complete_reply(
        self,
        turns: Sequence[Turn],
        params: Optional[GenerationParams] = None
    ) -> str:
        """Collect a streamed reply into one string."""
        fragments: List[str] = []
        async for fragment in self.stream_reply(turns, params):
            fragments.append(fragment)
        return "".join(fragments)


class AdapterFactory:
    """Factory for creating adapters."""

    @staticmethod
    async def create_adapter(provider: str, config: AdapterConfig) -> ModelAdapter:
        """
        Create and initialize an adapter for the specified provider.

        Args:
            provider: The name of the provider ("gemini", "openai" or "anthropic")
            config: Configuration for the adapter

        Returns:
            An initialized ModelAdapter instance

        Raises:
            ValueError: If the provider is not supported
        """
        name = provider.lower()
        if name == "gemini":
            # Dynamically import to avoid circular imports
            from icebreaker.adapters.gemini.adapter import GeminiAdapter
            adapter = GeminiAdapter(config)
        elif name == "openai":
            from icebreaker.adapters.openai.adapter import OpenAIAdapter
            adapter = OpenAIAdapter(config)
        elif name == "anthropic":
            from icebreaker.adapters.anthropic.adapter import AnthropicAdapter
            adapter = AnthropicAdapter(config)
        else:
            raise ValueError(f"Unsupported provider: {provider}")

        # Initialize the connection
        await adapter.connect()

        return adapter
