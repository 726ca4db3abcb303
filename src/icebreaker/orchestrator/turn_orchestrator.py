"""
Turn Orchestrator for Icebreaker.

This module implements the control loop of a session: it takes a participant
utterance, obtains the facilitator's reply, reads it aloud and moves the
phase and the roster forward.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Set, Tuple

from pydantic import BaseModel, Field

from icebreaker.adapters.base.adapter import GenerationParams, ModelAdapter, ProviderUnavailable
from icebreaker.memory.base import HistoryStore, PersistenceError
from icebreaker.orchestrator.conversation_phase import (
    DEFAULT_CLOSING_KEYWORDS,
    enters_next_speaker,
    next_phase,
)
from icebreaker.orchestrator.history_builder import build_prompt
from icebreaker.orchestrator.instructions import (
    DEFAULT_LANGUAGE,
    fallback_message,
    opening_message,
    speaker_context,
)
from icebreaker.orchestrator.session import Session
from icebreaker.protocol.message import ConversationPhase, Message, MessageRole
from icebreaker.speech.output import SpeechPlayer, SpeechReport


class OrchestratorState(str, Enum):
    """Where the orchestrator is in handling a turn."""

    IDLE = "idle"                      # Ready for the next utterance
    AWAITING_REPLY = "awaiting_reply"  # Request sent, nothing received yet
    STREAMING = "streaming"            # Reply fragments are arriving
    SPEAKING = "speaking"              # Idle, but the last reply is still being read aloud


class OrchestratorConfig(BaseModel):
    """Configuration for a turn orchestrator."""

    generation: GenerationParams = Field(default_factory=GenerationParams, description="Sampling parameters")
    closing_keywords: Tuple[str, ...] = Field(default=DEFAULT_CLOSING_KEYWORDS, description="Phrases that end an introduction")
    generate_opening: bool = Field(default=False, description="Let the model write the opening greeting")
    history_window: Optional[int] = Field(None, description="Replay only the most recent N messages to the model")


class TurnOrchestrator:
    """
    Drives one session turn by turn.

    The TurnOrchestrator is responsible for:
    - Accepting one utterance at a time and ignoring overlapping submissions
    - Building the model prompt and collecting the streamed reply
    - Appending messages to the session log
    - Handing replies to speech output without waiting for playback
    - Advancing the phase, and the roster when a new speaker is due
    - Persisting messages and snapshots in the background

    Phase and roster only change after a reply has been received. A failed or
    missing provider produces a fallback message and leaves both untouched.
    """

    def __init__(
        self,
        session: Session,
        adapter: Optional[ModelAdapter] = None,
        speech: Optional[SpeechPlayer] = None,
        store: Optional[HistoryStore] = None,
        config: Optional[OrchestratorConfig] = None,
        on_partial: Optional[Callable[[str], None]] = None
    ):
        """
        Initialize the orchestrator.

        Args:
            session: The session to drive
            adapter: Language model adapter, None when no provider is configured
            speech: Player for reading replies aloud
            store: History store for persisting the conversation
            config: Orchestrator configuration
            on_partial: Called with the reply text received so far while streaming
        """
        self.session = session
        self.adapter = adapter
        self.speech = speech
        self.store = store
        self.config = config or OrchestratorConfig()
        self.on_partial = on_partial
        self.logger = logging.getLogger("icebreaker.orchestrator")

        self._state = OrchestratorState.IDLE
        self._busy = False
        self._speech_tasks: Set[asyncio.Task] = set()
        self._persistence_tasks: Set[asyncio.Task] = set()
        self._persistence_lock = asyncio.Lock()

    @classmethod
    async def create(
        cls,
        participants: Iterable[Any],
        store: Optional[HistoryStore] = None,
        language: str = DEFAULT_LANGUAGE,
        **kwargs: Any
    ) -> "TurnOrchestrator":
        """
        Set up a new session and register it with the history store.

        A store that cannot start a conversation does not prevent the session
        from running; it simply is not persisted.

        Raises:
            ValidationError: If the participant list is empty or invalid
        """
        session = Session.create(participants, language=language)

        if store is not None:
            try:
                session.conversation_id = await store.start_conversation()
            except PersistenceError as e:
                logging.getLogger("icebreaker.orchestrator").warning(
                    f"Conversation will not be persisted: {e}"
                )

        orchestrator = cls(session, store=store, **kwargs)
        orchestrator._persist_state()
        return orchestrator

    @classmethod
    async def resume(
        cls,
        store: HistoryStore,
        conversation_id: str,
        **kwargs: Any
    ) -> "TurnOrchestrator":
        """
        Rebuild an orchestrator from a persisted conversation.

        Raises:
            PersistenceError: If the store cannot be read
            LookupError: If no snapshot exists for the conversation
        """
        state = await store.load_session_state(conversation_id)
        if state is None:
            raise LookupError(f"No saved session for conversation {conversation_id}")

        messages = await store.load_history(conversation_id)
        session = Session.from_state(state, messages)
        return cls(session, store=store, **kwargs)

    @property
    def state(self) -> OrchestratorState:
        if self._busy:
            return self._state
        if self.speech is not None and self.speech.is_speaking:
            return OrchestratorState.SPEAKING
        return OrchestratorState.IDLE

    @property
    def is_busy(self) -> bool:
        """True while a reply is in flight."""
        return self._busy

    @property
    def language(self) -> str:
        return self.session.language

    async def start(self) -> Optional[Message]:
        """
        Post the facilitator's opening message.

        By default this is the fixed greeting; with ``generate_opening`` the
        model writes it under the ``intro_start`` directive. On success the
        session moves on to ``intro_reacting``.

        A failed generation leaves only the fallback message behind, in which
        case ``start`` may be called again.

        Returns:
            The opening message, or None if the session has already started
        """
        if self._has_opened():
            self.logger.info("Session already started, skipping the opening message")
            return None
        if self._busy:
            return None

        self._busy = True
        self._state = OrchestratorState.AWAITING_REPLY
        try:
            if self.config.generate_opening:
                text = await self._generate_reply(self.session.phase)
                if text is None:
                    return self._commit_fallback()
            else:
                text = opening_message(self.language)

            message = self._commit_reply(text)
            self._advance("")
            return message
        finally:
            self._busy = False
            self._state = OrchestratorState.IDLE

    def _has_opened(self) -> bool:
        if self.session.phase != ConversationPhase.INTRO_START:
            return True
        fallback = fallback_message(self.language)
        return any(
            message.role != MessageRole.ASSISTANT or message.content != fallback
            for message in self.session.messages
        )

    async def submit_utterance(self, text: str) -> Optional[Message]:
        """
        Process one participant utterance.

        Empty utterances and utterances submitted while a reply is still in
        flight are ignored.

        Args:
            text: The finalized utterance

        Returns:
            The facilitator's reply message, or None if the utterance was ignored
        """
        if not text or not text.strip():
            self.logger.debug("Ignoring empty utterance")
            return None

        if self._busy:
            self.logger.info(f"Reply in flight, ignoring utterance {text!r}")
            return None

        # Claim the turn before the first suspension point
        self._busy = True
        self._state = OrchestratorState.AWAITING_REPLY
        try:
            phase = self.session.phase
            user_message = self.session.append_message(MessageRole.USER, text)
            self._persist_message(user_message)

            reply = await self._generate_reply(phase)
            if reply is None:
                return self._commit_fallback()

            message = self._commit_reply(reply)
            self._advance(text)
            return message
        finally:
            self._busy = False
            self._state = OrchestratorState.IDLE

    async def _generate_reply(self, phase: ConversationPhase) -> Optional[str]:
        """
        Stream a reply for the current log under the given phase.

        Returns:
            The complete reply, or None if no reply could be obtained
        """
        if self.adapter is None:
            self.logger.warning("No language model provider configured")
            return None

        messages = list(self.session.messages)
        if self.config.history_window:
            messages = messages[-self.config.history_window:]

        turns = build_prompt(
            messages,
            phase,
            language=self.language,
            speaker_line=speaker_context(self.session.roster, phase, self.language)
        )

        fragments: List[str] = []
        try:
            async for fragment in self.adapter.stream_reply(turns, self.config.generation):
                self._state = OrchestratorState.STREAMING
                fragments.append(fragment)
                if self.on_partial:
                    self.on_partial("".join(fragments))
        except ProviderUnavailable as e:
            self.logger.warning(f"Reply generation failed: {e}")
            return None

        reply = "".join(fragments).strip()
        if not reply:
            self.logger.warning("Provider returned an empty reply")
            return None
        return reply

    def _commit_reply(self, text: str) -> Message:
        """Append an assistant message, persist it and start reading it aloud."""
        message = self.session.append_message(MessageRole.ASSISTANT, text)
        self._persist_message(message)
        self._speak(text)
        return message

    def _commit_fallback(self) -> Message:
        """Tell the participants that no reply is available; phase and roster stay put."""
        message = self._commit_reply(fallback_message(self.language))
        self._persist_state()
        return message

    def _advance(self, utterance: str) -> None:
        """Apply the phase transition for a processed utterance."""
        previous = self.session.phase
        new_phase = next_phase(previous, utterance, self.config.closing_keywords)
        self.session.change_phase(new_phase)

        if enters_next_speaker(previous, new_phase):
            index = self.session.roster.advance()
            if self.session.roster.is_exhausted:
                self.logger.info(f"Roster advanced to {index}; all participants have introduced themselves")
            else:
                self.logger.info(f"Roster advanced to {index} ({self.session.roster.current_speaker().name})")

        self._persist_state()

    def _speak(self, text: str) -> None:
        if self.speech is None:
            return

        task = asyncio.create_task(self.speech.speak(text))
        self._speech_tasks.add(task)
        task.add_done_callback(self._speech_done)

    def _speech_done(self, task: asyncio.Task) -> None:
        self._speech_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self.logger.error(f"Speech output failed: {task.exception()}")

    async def stop_speaking(self) -> None:
        """Stop the sentence being read aloud; the conversation state is unaffected."""
        if self.speech is not None:
            await self.speech.stop()

    async def wait_for_speech(self) -> List[SpeechReport]:
        """Wait until every reply handed to speech output has been played."""
        tasks = list(self._speech_tasks)
        if not tasks:
            return []
        results = await asyncio.gather(*tasks, return_exceptions=True)
        return [result for result in results if isinstance(result, SpeechReport)]

    def _persist_message(self, message: Message) -> None:
        conversation_id = self.session.conversation_id
        self._persist(
            lambda: self.store.append_message(conversation_id, message),
            f"save message {message.id}"
        )

    def _persist_state(self) -> None:
        if self.session.conversation_id is None:
            return
        state = self.session.to_state()
        self._persist(lambda: self.store.save_session_state(state), "save session state")

    def _persist(self, operation: Callable[[], Awaitable[None]], description: str) -> None:
        """Run a store write in the background, in submission order."""
        if self.store is None or self.session.conversation_id is None:
            return

        task = asyncio.create_task(self._run_persistence(operation, description))
        self._persistence_tasks.add(task)
        task.add_done_callback(self._persistence_tasks.discard)

    async def _run_persistence(self, operation: Callable[[], Awaitable[None]], description: str) -> None:
        async with self._persistence_lock:
            try:
                await operation()
            except PersistenceError as e:
                self.logger.warning(f"Failed to {description}: {e}")

    async def flush(self) -> None:
        """Wait for all background store writes to finish."""
        while self._persistence_tasks:
            await asyncio.gather(*list(self._persistence_tasks))

    async def end(self) -> None:
        """Finish pending writes and mark the conversation as ended."""
        await self.flush()
        if self.store is None or self.session.conversation_id is None:
            return

        try:
            await self.store.end_conversation(self.session.conversation_id)
        except PersistenceError as e:
            self.logger.warning(f"Failed to end conversation {self.session.conversation_id}: {e}")
