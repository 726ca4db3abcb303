"""
Base History Store interface for Icebreaker.

This module defines the abstract base class that all conversation history
stores must adhere to, ensuring consistent behavior across storage backends.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from icebreaker.protocol.message import Message, SessionState


class PersistenceError(Exception):
    """Raised when a history store cannot save or load data."""
    pass


class HistoryStore(ABC):
    """
    Abstract base class for conversation history storage.

    A HistoryStore keeps an append-only record of the messages of each
    conversation, keyed by conversation identifier, together with the latest
    turn-taking snapshot of the session. Writes are keyed by message id, so
    saving the same message twice never duplicates it.
    """

    @abstractmethod
    async def start_conversation(self) -> str:
        """
        Register a new conversation.

        Returns:
            The new conversation identifier

        Raises:
            PersistenceError: If the conversation cannot be registered
        """
        pass

    @abstractmethod
    async def append_message(self, conversation_id: str, message: Message) -> None:
        """
        Append a message to a conversation.

        Args:
            conversation_id: The conversation the message belongs to
            message: The message to store

        Raises:
            PersistenceError: If the message cannot be stored
        """
        pass

    @abstractmethod
    async def load_history(self, conversation_id: str) -> List[Message]:
        """
        Load every message of a conversation, oldest first.

        Args:
            conversation_id: The conversation to load

        Returns:
            The ordered messages, empty for an unknown conversation

        Raises:
            PersistenceError: If the history cannot be read
        """
        pass

    @abstractmethod
    async def end_conversation(self, conversation_id: str) -> None:
        """
        Mark a conversation as ended.

        Args:
            conversation_id: The conversation to end

        Raises:
            PersistenceError: If the conversation cannot be updated
        """
        pass

    @abstractmethod
    async def save_session_state(self, state: SessionState) -> None:
        """
        Store the roster and phase snapshot of a conversation.

        Args:
            state: The snapshot, replacing any previous one

        Raises:
            PersistenceError: If the snapshot cannot be stored
        """
        pass

    @abstractmethod
    async def load_session_state(self, conversation_id: str) -> Optional[SessionState]:
        """
        Load the latest snapshot of a conversation.

        Args:
            conversation_id: The conversation to load

        Returns:
            The snapshot if one was saved, None otherwise

        Raises:
            PersistenceError: If the snapshot cannot be read
        """
        pass
