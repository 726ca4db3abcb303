"""
Tests for speech input and output.

This module contains tests for sentence splitting, the speech player, the
VOICEVOX backend (with its HTTP API mocked) and the microphone recognizer.
"""

import io
import json
import sys
import wave
import pytest
from typing import List
from unittest.mock import MagicMock, patch

import httpx
import numpy as np

from icebreaker.speech.input import SpeechInputError, WhisperSpeechInput
from icebreaker.speech.output import SpeechOutputError, SpeechOutputProvider, SpeechPlayer
from icebreaker.speech.sentences import split_sentences
from icebreaker.speech.voicevox import SoundDevicePlayback, VoicevoxSpeechOutput, decode_wav


def make_wav(frames: int = 240, channels: int = 1, rate: int = 24000, sampwidth: int = 2) -> bytes:
    """Helper function to build silent WAV audio."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as handle:
        handle.setnchannels(channels)
        handle.setsampwidth(sampwidth)
        handle.setframerate(rate)
        handle.writeframes(bytes(frames * channels * sampwidth))
    return buffer.getvalue()


class ScriptedProvider(SpeechOutputProvider):
    """Plays nothing; fails or reports a stop for chosen sentences."""

    def __init__(self, failing=(), stopping=()):
        self.failing = set(failing)
        self.stopping = set(stopping)
        self.played: List[str] = []
        self.stop_calls = 0

    async def synthesize_and_play(self, sentence: str) -> bool:
        if sentence in self.failing:
            raise SpeechOutputError(f"cannot synthesize {sentence}")
        self.played.append(sentence)
        return sentence not in self.stopping

    async def stop(self) -> None:
        self.stop_calls += 1


class FakePlayback:
    def __init__(self):
        self.played = []
        self.stopped = False

    async def play(self, samples, samplerate):
        self.played.append((samples.shape, samplerate))
        return True

    def stop(self):
        self.stopped = True


def test_split_sentences_scenario():
    assert split_sentences("Hello. How are you? Fine\n") == ["Hello", "How are you", "Fine"]


def test_split_sentences_japanese():
    assert split_sentences("こんにちは。元気ですか？ はい！") == ["こんにちは", "元気ですか", "はい"]


@pytest.mark.parametrize("text", ["", "   ", "...", "\n\n"])
def test_split_sentences_without_content(text):
    assert split_sentences(text) == []


@pytest.mark.asyncio
async def test_player_plays_units_in_order():
    provider = ScriptedProvider()
    player = SpeechPlayer(provider)

    report = await player.speak("Hello. How are you? Fine\n")

    assert provider.played == ["Hello", "How are you", "Fine"]
    assert report.units == 3
    assert report.played == 3
    assert not report.has_failures
    assert not player.is_speaking


@pytest.mark.asyncio
async def test_player_continues_after_failed_unit():
    notices = []
    provider = ScriptedProvider(failing={"How are you"})
    player = SpeechPlayer(provider, on_notice=notices.append)

    report = await player.speak("Hello. How are you? Fine")

    assert provider.played == ["Hello", "Fine"]
    assert report.failed == ["How are you"]
    assert report.played == 2
    assert notices == ["1 of 3 sentences could not be played"]


@pytest.mark.asyncio
async def test_player_counts_stopped_units():
    provider = ScriptedProvider(stopping={"Hello"})
    player = SpeechPlayer(provider)

    report = await player.speak("Hello. Fine")
    await player.stop()

    assert report.stopped == 1
    assert report.played == 1
    assert provider.stop_calls == 1


@pytest.mark.asyncio
async def test_player_ignores_empty_text():
    provider = ScriptedProvider()
    report = await SpeechPlayer(provider).speak("")

    assert report.units == 0
    assert provider.played == []


def test_decode_wav():
    samples, rate = decode_wav(make_wav(frames=100, channels=2, rate=24000))

    assert rate == 24000
    assert samples.shape == (100, 2)
    assert samples.dtype == np.int16


def test_decode_wav_rejects_bad_audio():
    with pytest.raises(SpeechOutputError):
        decode_wav(b"not a wav file")
    with pytest.raises(SpeechOutputError):
        decode_wav(make_wav(sampwidth=1))


def create_voicevox(handler, playback=None) -> VoicevoxSpeechOutput:
    """Helper function to create a VOICEVOX backend over a mocked HTTP transport."""
    return VoicevoxSpeechOutput(
        base_url="http://voicevox.test:50021/",
        speaker=3,
        playback=playback or FakePlayback(),
        transport=httpx.MockTransport(handler)
    )


@pytest.mark.asyncio
async def test_voicevox_synthesize_and_play():
    audio_query = {"accent_phrases": [], "speedScale": 1.0}
    wav = make_wav(frames=480)
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path == "/version":
            return httpx.Response(200, json="0.14.7")
        if request.url.path == "/audio_query":
            return httpx.Response(200, json=audio_query)
        if request.url.path == "/synthesis":
            return httpx.Response(200, content=wav, headers={"content-type": "audio/wav"})
        return httpx.Response(404)

    playback = FakePlayback()
    voice = create_voicevox(handler, playback)

    completed = await voice.synthesize_and_play("こんにちは")
    await voice.close()

    assert completed
    assert playback.played == [((480, 1), 24000)]
    assert [r.url.path for r in requests] == ["/version", "/audio_query", "/synthesis"]
    assert requests[1].url.params["text"] == "こんにちは"
    assert requests[1].url.params["speaker"] == "3"
    assert json.loads(requests[2].content) == audio_query


@pytest.mark.asyncio
async def test_voicevox_engine_not_running():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    voice = create_voicevox(handler)

    with pytest.raises(SpeechOutputError):
        await voice.check_engine()
    with pytest.raises(SpeechOutputError):
        await voice.synthesize_and_play("hello")


@pytest.mark.asyncio
async def test_voicevox_synthesis_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/version":
            return httpx.Response(200, json="0.14.7")
        return httpx.Response(500, json={"detail": "engine error"})

    voice = create_voicevox(handler)

    assert await voice.check_engine() == "0.14.7"
    with pytest.raises(SpeechOutputError):
        await voice.synthesize("hello")
    with pytest.raises(SpeechOutputError):
        await voice.synthesize("")


@pytest.mark.asyncio
async def test_voicevox_stop_only_when_playing():
    playback = FakePlayback()
    voice = create_voicevox(lambda request: httpx.Response(404), playback)

    await voice.stop()
    assert not playback.stopped


@pytest.mark.asyncio
async def test_sounddevice_playback():
    fake_sd = MagicMock()
    samples = np.zeros((10, 1), dtype=np.int16)

    with patch.dict(sys.modules, {"sounddevice": fake_sd}):
        playback = SoundDevicePlayback()
        assert await playback.play(samples, 24000)

    fake_sd.play.assert_called_once_with(samples, 24000)
    fake_sd.wait.assert_called_once()
    fake_sd.stop.assert_called_once()


@pytest.mark.asyncio
async def test_sounddevice_playback_failure():
    fake_sd = MagicMock()
    fake_sd.play.side_effect = RuntimeError("no output device")

    with patch.dict(sys.modules, {"sounddevice": fake_sd}):
        with pytest.raises(SpeechOutputError):
            await SoundDevicePlayback().play(np.zeros((10, 1), dtype=np.int16), 24000)

    fake_sd.stop.assert_called_once()


@pytest.mark.asyncio
async def test_whisper_listen_yields_utterances():
    speech_input = WhisperSpeechInput(segment_seconds=0.1)
    speech_input._load_model = MagicMock()
    speech_input._record_segment = MagicMock(return_value=np.zeros(1600, dtype=np.float32))
    texts = iter(["山田です", "", "以上です"])

    def transcribe(samples):
        text = next(texts)
        if text == "以上です":
            speech_input._listening = False
        return text

    speech_input._transcribe = transcribe

    utterances = [text async for text in speech_input.listen()]

    assert utterances == ["山田です", "以上です"]
    assert not speech_input.is_listening


@pytest.mark.asyncio
async def test_whisper_listen_stops_on_error():
    speech_input = WhisperSpeechInput()
    speech_input._load_model = MagicMock()
    speech_input._record_segment = MagicMock(side_effect=SpeechInputError("no microphone"))

    with pytest.raises(SpeechInputError):
        async for _ in speech_input.listen():
            pass

    assert not speech_input.is_listening


class CrashingProvider(ScriptedProvider):
    """Raises an unexpected error for chosen sentences."""

    def __init__(self, crashing=()):
        super().__init__()
        self.crashing = set(crashing)

    async def synthesize_and_play(self, sentence: str) -> bool:
        if sentence in self.crashing:
            raise RuntimeError("audio device disappeared")
        return await super().synthesize_and_play(sentence)


@pytest.mark.asyncio
async def test_player_continues_after_unexpected_error():
    notices = []
    provider = CrashingProvider(crashing={"First"})
    player = SpeechPlayer(provider, on_notice=notices.append)

    report = await player.speak("First. Second. Third.")

    assert provider.played == ["Second", "Third"]
    assert report.failed == ["First"]
    assert report.played == 2
    assert notices == ["1 of 3 sentences could not be played"]
    assert not player.is_speaking


def test_decode_wav_rejects_truncated_audio():
    # Drop the last byte so the data ends mid-sample
    with pytest.raises(SpeechOutputError):
        decode_wav(make_wav(frames=100)[:-1])


@pytest.mark.asyncio
async def test_voicevox_truncated_audio_skips_only_that_sentence():
    good = make_wav(frames=240)
    truncated = make_wav(frames=240)[:-1]

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/version":
            return httpx.Response(200, json="0.14.7")
        if request.url.path == "/audio_query":
            return httpx.Response(200, json={"text": request.url.params["text"]})
        body = json.loads(request.content)
        return httpx.Response(200, content=truncated if body["text"] == "First" else good)

    playback = FakePlayback()
    player = SpeechPlayer(create_voicevox(handler, playback))

    report = await player.speak("First. Second. Third.")

    assert report.failed == ["First"]
    assert report.played == 2
    assert len(playback.played) == 2
