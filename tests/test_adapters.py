"""
Tests for the language model adapters.

This module contains tests for the Gemini, OpenAI and Anthropic adapters,
verifying they correctly translate the facilitator/participant exchange into
provider-specific requests and stream back the reply text.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from icebreaker.adapters.anthropic.adapter import AnthropicAdapter
from icebreaker.adapters.base.adapter import (
    EMPTY_TURN_PLACEHOLDER,
    AdapterConfig,
    AdapterFactory,
    ConnectionStatus,
    GenerationParams,
    ProviderUnavailable,
)
from icebreaker.adapters.gemini.adapter import GeminiAdapter
from icebreaker.adapters.openai.adapter import OpenAIAdapter
from icebreaker.protocol.message import Turn, TurnRole


def create_test_turns():
    """Helper function to create an exchange as built by the history builder."""
    return [
        Turn(role=TurnRole.FACILITATOR, text="You are a friendly MC."),
        Turn(role=TurnRole.FACILITATOR, text="Greet everyone."),
        Turn(role=TurnRole.FACILITATOR, text="Welcome!"),
        Turn(role=TurnRole.PARTICIPANT, text="I am Yamada"),
        Turn(role=TurnRole.FACILITATOR, text="Hi Yamada!"),
        Turn(role=TurnRole.PARTICIPANT, text=""),
    ]


async def async_iter(items):
    for item in items:
        yield item


def connected(adapter):
    """Mark an adapter as connected with a mocked client."""
    adapter.client = MagicMock()
    adapter._connection_status = ConnectionStatus(connected=True)
    return adapter


def test_gemini_format():
    adapter = GeminiAdapter(AdapterConfig(api_key="test-key"))
    params = GenerationParams(temperature=0.5, top_k=20, top_p=0.9, max_output_tokens=256)

    request = adapter.turns_to_provider_format(create_test_turns(), params)

    assert request["model"] == "gemini-2.5-flash"
    roles = [content.role for content in request["contents"]]
    assert roles == ["model", "model", "model", "user", "model", "user"]
    assert request["contents"][-1].parts[0].text == EMPTY_TURN_PLACEHOLDER
    assert request["config"].temperature == 0.5
    assert request["config"].top_k == 20
    assert request["config"].top_p == 0.9
    assert request["config"].max_output_tokens == 256


def test_openai_format():
    adapter = OpenAIAdapter(AdapterConfig(api_key="test-key", model="gpt-4o"))

    request = adapter.turns_to_provider_format(create_test_turns(), GenerationParams())

    assert request["model"] == "gpt-4o"
    assert [m["role"] for m in request["messages"]] == [
        "system", "assistant", "assistant", "user", "assistant", "user"
    ]
    assert request["messages"][0]["content"] == "You are a friendly MC."
    assert request["stream"] is True
    assert request["max_tokens"] == 1024
    assert "top_k" not in request


def test_anthropic_format():
    adapter = AnthropicAdapter(AdapterConfig(api_key="test-key"))

    request = adapter.turns_to_provider_format(create_test_turns(), GenerationParams())

    assert request["system"] == "You are a friendly MC.\n\nGreet everyone.\n\nWelcome!"
    assert request["messages"] == [
        {"role": "user", "content": "I am Yamada"},
        {"role": "assistant", "content": "Hi Yamada!"},
        {"role": "user", "content": EMPTY_TURN_PLACEHOLDER},
    ]
    assert request["top_k"] == 40
    assert request["max_tokens"] == 1024


def test_anthropic_merges_consecutive_roles():
    adapter = AnthropicAdapter(AdapterConfig(api_key="test-key"))
    turns = [
        Turn(role=TurnRole.FACILITATOR, text="Persona"),
        Turn(role=TurnRole.PARTICIPANT, text="first"),
        Turn(role=TurnRole.PARTICIPANT, text="second"),
    ]

    request = adapter.turns_to_provider_format(turns, GenerationParams())

    assert request["messages"] == [{"role": "user", "content": "first\nsecond"}]


@pytest.mark.asyncio
async def test_gemini_stream_reply():
    adapter = connected(GeminiAdapter(AdapterConfig(api_key="test-key")))
    chunks = [MagicMock(text="Nice to "), MagicMock(text=None), MagicMock(text="meet you!")]
    adapter.client.aio.models.generate_content_stream = AsyncMock(return_value=async_iter(chunks))

    reply = await adapter.complete_reply(create_test_turns())

    assert reply == "Nice to meet you!"
    kwargs = adapter.client.aio.models.generate_content_stream.call_args.kwargs
    assert kwargs["model"] == "gemini-2.5-flash"
    assert adapter.connection_status.latency_ms is not None


@pytest.mark.asyncio
async def test_gemini_without_api_key():
    adapter = GeminiAdapter(AdapterConfig(api_key=""))

    assert not await adapter.connect()
    with pytest.raises(ProviderUnavailable):
        await adapter.complete_reply(create_test_turns())


@pytest.mark.asyncio
async def test_openai_stream_reply():
    with patch("icebreaker.adapters.openai.adapter.AsyncOpenAI") as mock_openai:
        client = mock_openai.return_value
        client.models.list = AsyncMock(return_value=[])
        chunks = [
            MagicMock(choices=[MagicMock(delta=MagicMock(content="Hello"))]),
            MagicMock(choices=[]),
            MagicMock(choices=[MagicMock(delta=MagicMock(content=" Yamada"))]),
        ]
        client.chat.completions.create = AsyncMock(return_value=async_iter(chunks))

        adapter = OpenAIAdapter(AdapterConfig(api_key="test-key"))
        assert await adapter.connect()

        fragments = [fragment async for fragment in adapter.stream_reply(create_test_turns())]

    assert fragments == ["Hello", " Yamada"]
    assert client.chat.completions.create.call_args.kwargs["stream"] is True


@pytest.mark.asyncio
async def test_openai_connection_failure():
    with patch("icebreaker.adapters.openai.adapter.AsyncOpenAI") as mock_openai:
        mock_openai.return_value.models.list = AsyncMock(side_effect=Exception("invalid api key"))

        adapter = OpenAIAdapter(AdapterConfig(api_key="bad-key"))
        assert not await adapter.connect()
        assert "invalid api key" in adapter.connection_status.last_error

        with pytest.raises(ProviderUnavailable):
            await adapter.complete_reply(create_test_turns())


@pytest.mark.asyncio
async def test_stream_failure_is_wrapped():
    adapter = connected(OpenAIAdapter(AdapterConfig(api_key="test-key")))
    adapter.client.chat.completions.create = AsyncMock(side_effect=Exception("Rate limit exceeded"))

    with pytest.raises(ProviderUnavailable) as excinfo:
        await adapter.complete_reply(create_test_turns())

    assert excinfo.value.provider_name == "openai"
    assert adapter.connection_status.rate_limited


class FakeAnthropicStream:
    """Stands in for the context manager returned by ``messages.stream``."""

    def __init__(self, texts):
        self.texts = texts

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    @property
    def text_stream(self):
        return async_iter(self.texts)


@pytest.mark.asyncio
async def test_anthropic_stream_reply():
    adapter = connected(AnthropicAdapter(AdapterConfig(api_key="test-key")))
    adapter.client.messages.stream = MagicMock(return_value=FakeAnthropicStream(["おおきに", "！"]))

    reply = await adapter.complete_reply(create_test_turns())

    assert reply == "おおきに！"
    assert adapter.client.messages.stream.call_args.kwargs["model"] == "claude-3-5-haiku-latest"


@pytest.mark.asyncio
async def test_factory_creates_connected_adapter():
    with patch("icebreaker.adapters.gemini.adapter.genai.Client") as mock_client:
        adapter = await AdapterFactory.create_adapter("Gemini", AdapterConfig(api_key="test-key"))

    assert isinstance(adapter, GeminiAdapter)
    assert adapter.connection_status.connected
    assert mock_client.call_args.kwargs["api_key"] == "test-key"


@pytest.mark.asyncio
async def test_factory_rejects_unknown_provider():
    with pytest.raises(ValueError):
        await AdapterFactory.create_adapter("mistral", AdapterConfig(api_key="test-key"))
