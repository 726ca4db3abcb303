"""
Speech output for Icebreaker.

This module defines the speech output provider interface and the player that
reads a facilitator reply aloud one sentence at a time.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from pydantic import BaseModel, Field

from icebreaker.speech.sentences import split_sentences

logger = logging.getLogger("icebreaker.speech")


class SpeechOutputError(Exception):
    """Raised when a sentence cannot be synthesized or played."""
    pass


class SpeechOutputProvider(ABC):
    """Base interface for text-to-speech backends."""

    @abstractmethod
    async def synthesize_and_play(self, sentence: str) -> bool:
        """
        Synthesize one sentence and play it to completion.

        Args:
            sentence: A single sentence unit

        Returns:
            True if playback finished, False if it was stopped early

        Raises:
            SpeechOutputError: If synthesis or playback fails
        """
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Stop the unit that is currently playing, if any."""
        pass

    async def close(self) -> None:
        """Release any resources held by the provider."""
        return None


class SpeechReport(BaseModel):
    """Outcome of reading one reply aloud."""

    units: int = Field(default=0, description="Number of sentence units in the reply")
    played: int = Field(default=0, description="Units played to completion")
    stopped: int = Field(default=0, description="Units cut short by a stop request")
    failed: List[str] = Field(default_factory=list, description="Units that could not be played")

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)


class SpeechPlayer:
    """
    Plays replies through a speech output provider.

    Replies are played in the order they were submitted; within a reply the
    sentence units are played sequentially. A failing unit is logged and
    skipped so the rest of the reply is still heard.
    """

    def __init__(
        self,
        provider: SpeechOutputProvider,
        on_notice: Optional[Callable[[str], None]] = None
    ):
        """
        Initialize the player.

        Args:
            provider: Backend that synthesizes and plays a single unit
            on_notice: Called with a user-facing notice when units fail
        """
        self.provider = provider
        self.on_notice = on_notice
        self._lock = asyncio.Lock()
        self._pending = 0

    @property
    def is_speaking(self) -> bool:
        """True while a reply is being played or waiting to be played."""
        return self._pending > 0

    async def speak(self, text: str) -> SpeechReport:
        """
        Read a reply aloud.

        Args:
            text: The full reply text

        Returns:
            A report of what was played
        """
        units = split_sentences(text)
        report = SpeechReport(units=len(units))
        if not units:
            return report

        self._pending += 1
        try:
            async with self._lock:
                for unit in units:
                    try:
                        completed = await self.provider.synthesize_and_play(unit)
                    except SpeechOutputError as e:
                        logger.warning(f"Skipping sentence that failed to play ({e}): {unit!r}")
                        report.failed.append(unit)
                        continue
                    except Exception:
                        logger.exception(f"Unexpected error while playing {unit!r}")
                        report.failed.append(unit)
                        continue

                    if completed:
                        report.played += 1
                    else:
                        report.stopped += 1
        finally:
            self._pending -= 1

        if report.has_failures and self.on_notice:
            self.on_notice(f"{len(report.failed)} of {report.units} sentences could not be played")

        return report

    async def stop(self) -> None:
        """Stop the sentence that is currently playing."""
        await self.provider.stop()
