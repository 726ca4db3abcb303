"""
Speech input for Icebreaker.

This module defines the speech input provider interface and a microphone
implementation that records fixed-length segments and transcribes them with
faster-whisper.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Optional

logger = logging.getLogger("icebreaker.speech")


class SpeechInputError(Exception):
    """Raised when speech cannot be captured or recognized."""
    pass


class SpeechInputProvider(ABC):
    """Base interface for speech-to-text backends."""

    @abstractmethod
    async def start(self) -> None:
        """Begin listening."""
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Stop listening."""
        pass

    @property
    @abstractmethod
    def is_listening(self) -> bool:
        pass

    @abstractmethod
    def listen(self) -> AsyncIterator[str]:
        """
        Yield one finalized utterance per completed speech segment.

        Raises:
            SpeechInputError: If capture or recognition fails; listening stops
        """
        pass


class WhisperSpeechInput(SpeechInputProvider):
    """Microphone capture with sounddevice and transcription with faster-whisper."""

    def __init__(
        self,
        model_name: str = "small",
        language: Optional[str] = "ja",
        segment_seconds: float = 6.0,
        samplerate: int = 16000,
        device: Optional[str] = None,
        compute_type: Optional[str] = None
    ):
        """
        Initialize the recognizer.

        Args:
            model_name: faster-whisper model size or path
            language: Spoken language, None to auto-detect
            segment_seconds: Length of each recorded segment
            samplerate: Recording sample rate in Hz
            device: Inference device for faster-whisper ("cpu", "cuda")
            compute_type: faster-whisper compute type
        """
        self.model_name = model_name
        self.language = language
        self.segment_seconds = segment_seconds
        self.samplerate = samplerate
        self.device = device
        self.compute_type = compute_type
        self._model: Any = None
        self._listening = False

    @property
    def is_listening(self) -> bool:
        return self._listening

    def _load_model(self) -> Any:
        if self._model is None:
            try:
                from faster_whisper import WhisperModel
            except Exception as exc:  # pragma: no cover - optional dependency
                raise SpeechInputError("faster-whisper is required for transcription.") from exc

            kwargs = {}
            if self.device:
                kwargs["device"] = self.device
            if self.compute_type:
                kwargs["compute_type"] = self.compute_type
            self._model = WhisperModel(self.model_name, **kwargs)
        return self._model

    def _record_segment(self) -> Any:
        try:
            import sounddevice as sd
        except Exception as exc:  # pragma: no cover - optional dependency
            raise SpeechInputError("sounddevice is required for recording.") from exc

        frames = int(self.segment_seconds * self.samplerate)
        try:
            recording = sd.rec(frames, samplerate=self.samplerate, channels=1, dtype="float32")
            sd.wait()
        except Exception as exc:
            raise SpeechInputError(f"Recording failed: {exc}") from exc
        return recording.reshape(-1)

    def _transcribe(self, samples: Any) -> str:
        model = self._load_model()
        try:
            segments, _info = model.transcribe(samples, language=self.language)
            return "".join(segment.text for segment in segments).strip()
        except Exception as exc:
            raise SpeechInputError(f"Recognition failed: {exc}") from exc

    async def start(self) -> None:
        await asyncio.to_thread(self._load_model)
        self._listening = True
        logger.info("Listening for speech")

    async def stop(self) -> None:
        self._listening = False
        logger.info("Stopped listening")

    async def listen(self) -> AsyncIterator[str]:
        if not self._listening:
            await self.start()

        while self._listening:
            try:
                samples = await asyncio.to_thread(self._record_segment)
                if not self._listening:
                    break
                text = await asyncio.to_thread(self._transcribe, samples)
            except SpeechInputError:
                self._listening = False
                raise

            if text:
                yield text
