"""
In-memory implementation of the History Store for Icebreaker.

This module provides a simple in-memory implementation of the HistoryStore
interface, useful for testing and for sessions that need no durability.
"""

import logging
import time
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from icebreaker.memory.base import HistoryStore, PersistenceError
from icebreaker.protocol.message import Message, SessionState


class InMemoryStore(HistoryStore):
    """
    In-memory implementation of the History Store.

    This implementation keeps all data in process memory, making it fast but
    non-persistent. Messages are immutable, so they are stored and returned
    without copying; session snapshots are copied on the way in and out.
    """

    def __init__(self):
        """Initialize the in-memory store."""
        self._conversations: Dict[str, Dict[str, Any]] = {}
        self._messages: Dict[str, Dict[UUID, Message]] = {}
        self._states: Dict[str, SessionState] = {}
        self.logger = logging.getLogger("icebreaker.memory")

    async def start_conversation(self) -> str:
        """Register a new conversation in memory."""
        conversation_id = str(uuid4())
        self._conversations[conversation_id] = {
            "started_at": int(time.time() * 1000),
            "ended_at": None,
        }
        self._messages[conversation_id] = {}
        self.logger.info(f"Started conversation {conversation_id}")
        return conversation_id

    async def append_message(self, conversation_id: str, message: Message) -> None:
        """Store a message, keyed by its id."""
        if not conversation_id:
            raise PersistenceError("A conversation id is required")

        # Dicts keep insertion order, so re-saving a message keeps its position
        self._messages.setdefault(conversation_id, {})[message.id] = message

    async def load_history(self, conversation_id: str) -> List[Message]:
        """Retrieve the messages of a conversation, oldest first."""
        messages = list(self._messages.get(conversation_id, {}).values())

        # Stable sort: equal timestamps keep insertion order
        messages.sort(key=lambda m: m.timestamp)
        return messages

    async def end_conversation(self, conversation_id: str) -> None:
        """Mark a conversation as ended."""
        if conversation_id not in self._conversations:
            raise PersistenceError(f"Conversation {conversation_id} not found")

        self._conversations[conversation_id]["ended_at"] = int(time.time() * 1000)
        self.logger.info(f"Ended conversation {conversation_id}")

    async def save_session_state(self, state: SessionState) -> None:
        """Store a copy of the session snapshot."""
        self._states[state.conversation_id] = state.model_copy(deep=True)

    async def load_session_state(self, conversation_id: str) -> Optional[SessionState]:
        """Retrieve a copy of the session snapshot."""
        state = self._states.get(conversation_id)
        return state.model_copy(deep=True) if state is not None else None

    def is_ended(self, conversation_id: str) -> bool:
        """Whether ``end_conversation`` has been called for a conversation."""
        record = self._conversations.get(conversation_id)
        return bool(record and record["ended_at"] is not None)
