"""
VOICEVOX speech output for Icebreaker.

Sentences are synthesized by a VOICEVOX engine over its HTTP API and the
resulting WAV audio is played on the default output device.
"""

import asyncio
import io
import logging
import wave
from typing import Any, Dict, Optional, Tuple

import httpx
import numpy as np

from icebreaker.speech.output import SpeechOutputError, SpeechOutputProvider

logger = logging.getLogger("icebreaker.speech")

DEFAULT_VOICEVOX_URL = "http://localhost:50021"
DEFAULT_SPEAKER = 3


def decode_wav(audio: bytes) -> Tuple[np.ndarray, int]:
    """
    Decode 16-bit PCM WAV bytes.

    Returns:
        Samples shaped (frames, channels) and the sample rate
    """
    try:
        with wave.open(io.BytesIO(audio), "rb") as handle:
            channels = handle.getnchannels()
            sampwidth = handle.getsampwidth()
            framerate = handle.getframerate()
            raw = handle.readframes(handle.getnframes())
    except (wave.Error, EOFError) as exc:
        raise SpeechOutputError(f"Invalid WAV audio: {exc}") from exc

    if sampwidth != 2:
        raise SpeechOutputError("Only 16-bit PCM audio is supported.")

    try:
        data = np.frombuffer(raw, dtype=np.int16).reshape(-1, channels)
    except ValueError as exc:
        raise SpeechOutputError(f"Truncated WAV audio: {exc}") from exc
    return data, framerate


class SoundDevicePlayback:
    """Plays decoded audio on the default output device with sounddevice."""

    def __init__(self):
        self._active = False
        self._stopped = False

    async def play(self, samples: np.ndarray, samplerate: int) -> bool:
        """
        Play audio and wait until it ends.

        Returns:
            True if playback ran to the end, False if ``stop`` cut it short
        """
        try:
            import sounddevice as sd
        except Exception as exc:  # pragma: no cover - optional dependency
            raise SpeechOutputError("sounddevice is required for audio playback.") from exc

        self._stopped = False
        self._active = True
        try:
            sd.play(samples, samplerate)
            await asyncio.to_thread(sd.wait)
        except Exception as exc:
            raise SpeechOutputError(f"Playback failed: {exc}") from exc
        finally:
            # Release the output stream on every exit path
            sd.stop()
            self._active = False
        return not self._stopped

    def stop(self) -> None:
        if not self._active:
            return
        import sounddevice as sd

        self._stopped = True
        sd.stop()


class VoicevoxSpeechOutput(SpeechOutputProvider):
    """Speech output backed by a VOICEVOX engine."""

    def __init__(
        self,
        base_url: str = DEFAULT_VOICEVOX_URL,
        speaker: int = DEFAULT_SPEAKER,
        timeout: float = 30.0,
        playback: Optional[Any] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the VOICEVOX backend.

        Args:
            base_url: URL of the VOICEVOX engine
            speaker: VOICEVOX speaker (voice) id
            timeout: HTTP timeout in seconds
            playback: Object with async ``play(samples, samplerate)`` and ``stop()``
            transport: Optional httpx transport, used by tests
        """
        self.base_url = base_url.rstrip("/")
        self.speaker = speaker
        self.timeout = timeout
        self.playback = playback or SoundDevicePlayback()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._engine_version: Optional[str] = None
        self._current: Optional[str] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport
            )
        return self._client

    async def check_engine(self) -> str:
        """
        Verify that the engine is running.

        Returns:
            The engine version string

        Raises:
            SpeechOutputError: If the engine cannot be reached
        """
        try:
            response = await self._get_client().get("/version")
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error(f"VOICEVOX Engine connection error: {exc}")
            raise SpeechOutputError(
                "VOICEVOX Engine is not running. Please start the engine first."
            ) from exc

        self._engine_version = response.text.strip().strip('"')
        logger.info(f"VOICEVOX Engine version: {self._engine_version}")
        return self._engine_version

    async def synthesize(self, sentence: str) -> bytes:
        """
        Turn a sentence into WAV audio.

        Raises:
            SpeechOutputError: If the engine rejects the text or is unreachable
        """
        if not sentence:
            raise SpeechOutputError("Text is required")

        if self._engine_version is None:
            await self.check_engine()

        client = self._get_client()
        try:
            query_response = await client.post(
                "/audio_query",
                params={"text": sentence, "speaker": self.speaker}
            )
            query_response.raise_for_status()
            audio_query: Dict[str, Any] = query_response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise SpeechOutputError(f"Failed to generate audio query: {exc}") from exc

        try:
            synthesis_response = await client.post(
                "/synthesis",
                params={"speaker": self.speaker},
                json=audio_query
            )
            synthesis_response.raise_for_status()
        except httpx.HTTPError as exc:
            raise SpeechOutputError(f"Failed to synthesize speech: {exc}") from exc

        return synthesis_response.content

    async def synthesize_and_play(self, sentence: str) -> bool:
        audio = await self.synthesize(sentence)
        samples, samplerate = decode_wav(audio)

        self._current = sentence
        try:
            return await self.playback.play(samples, samplerate)
        finally:
            self._current = None

    async def stop(self) -> None:
        if self._current is not None:
            logger.info(f"Stopping playback of {self._current!r}")
            self.playback.stop()

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
