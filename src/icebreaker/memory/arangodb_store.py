"""
ArangoDB implementation of the History Store for Icebreaker.

This module provides a durable history store backed by ArangoDB. Messages are
kept in one collection keyed by message id, conversations and session
snapshots in two more.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional, TypeVar
from uuid import uuid4

from arango import ArangoClient
from arango.database import StandardDatabase
from arango.exceptions import ArangoError

from icebreaker.memory.base import HistoryStore, PersistenceError
from icebreaker.protocol.message import Message, SessionState

T = TypeVar("T")


class ArangoDBStore(HistoryStore):
    """
    ArangoDB-based implementation of the History Store.

    python-arango is synchronous, so every database call runs in a worker
    thread to keep the conversation loop responsive.
    """

    def __init__(
        self,
        host: str = "http://localhost:8529",
        username: str = "root",
        password: str = "",
        db_name: str = "icebreaker",
        collection_prefix: str = "icebreaker_",
        create_if_not_exists: bool = True
    ):
        """
        Initialize the ArangoDB history store.

        Args:
            host: ArangoDB server URL
            username: Database username
            password: Database password
            db_name: Name of the database to use
            collection_prefix: Prefix for all collections
            create_if_not_exists: Whether to create database and collections if they don't exist
        """
        self.host = host
        self.username = username
        self.password = password
        self.db_name = db_name
        self.collection_prefix = collection_prefix
        self._create_if_not_exists = create_if_not_exists

        # Collection names
        self.conversation_collection_name = f"{collection_prefix}conversations"
        self.message_collection_name = f"{collection_prefix}messages"
        self.state_collection_name = f"{collection_prefix}session_states"

        # Initialize connection
        self.client: Optional[ArangoClient] = None
        self.db: Optional[StandardDatabase] = None
        self.conversation_collection = None
        self.message_collection = None
        self.state_collection = None
        self.logger = logging.getLogger("icebreaker.memory")

    def connect(self) -> None:
        """
        Connect to ArangoDB and initialize collections.

        Raises:
            PersistenceError: If the server cannot be reached or set up
        """
        try:
            self.client = ArangoClient(hosts=self.host)
            sys_db = self.client.db("_system", username=self.username, password=self.password)

            # Create database if it doesn't exist
            if self._create_if_not_exists and not sys_db.has_database(self.db_name):
                sys_db.create_database(self.db_name)

            self.db = self.client.db(self.db_name, username=self.username, password=self.password)

            self._create_collections()
            self._create_indexes()

        except (ArangoError, ConnectionError) as e:
            # python-arango reports an unreachable host as ConnectionAbortedError
            self.client = None
            raise PersistenceError(f"Failed to connect to ArangoDB: {e}") from e

        self.logger.info(f"Connected to ArangoDB database {self.db_name} at {self.host}")

    def _create_collections(self) -> None:
        """Create the necessary collections if they don't exist."""
        names = [
            self.conversation_collection_name,
            self.message_collection_name,
            self.state_collection_name,
        ]
        if self._create_if_not_exists:
            for name in names:
                if not self.db.has_collection(name):
                    self.db.create_collection(name)

        self.conversation_collection = self.db.collection(self.conversation_collection_name)
        self.message_collection = self.db.collection(self.message_collection_name)
        self.state_collection = self.db.collection(self.state_collection_name)

    def _create_indexes(self) -> None:
        """Index messages by conversation and time."""
        fields = ["conversation_id", "timestamp"]
        if not any(idx.get("fields") == fields for idx in self.message_collection.indexes()):
            self.message_collection.add_index({"type": "persistent", "fields": fields, "unique": False})

    async def _run(self, operation: Callable[[], T], action: str) -> T:
        """Run a blocking database operation in a worker thread."""
        if self.client is None:
            await asyncio.to_thread(self.connect)

        try:
            return await asyncio.to_thread(operation)
        except (ArangoError, ConnectionError) as e:
            self.logger.error(f"ArangoDB failed to {action}: {e}")
            raise PersistenceError(f"Failed to {action}: {e}") from e

    def _message_to_doc(self, conversation_id: str, message: Message) -> Dict[str, Any]:
        """
        Convert a Message object to an ArangoDB document.

        Args:
            conversation_id: The conversation the message belongs to
            message: The message to convert

        Returns:
            Dictionary representing the ArangoDB document
        """
        doc = message.model_dump(mode="json")
        doc["_key"] = str(message.id)
        doc["conversation_id"] = conversation_id
        # Tie-breaker for messages created within the same millisecond
        doc["stored_at"] = time.time_ns()
        return doc

    def _doc_to_message(self, doc: Dict[str, Any]) -> Message:
        """
        Convert an ArangoDB document to a Message object.

        Args:
            doc: The document to convert

        Returns:
            Message object
        """
        fields = {key: value for key, value in doc.items() if key in Message.model_fields}
        return Message.model_validate(fields)

    async def start_conversation(self) -> str:
        """Register a new conversation document."""
        conversation_id = str(uuid4())
        doc = {
            "_key": conversation_id,
            "started_at": int(time.time() * 1000),
            "ended_at": None,
            "status": "active",
        }
        await self._run(lambda: self.conversation_collection.insert(doc), "start conversation")
        self.logger.info(f"Started conversation {conversation_id}")
        return conversation_id

    async def append_message(self, conversation_id: str, message: Message) -> None:
        """Insert a message; a message that was already stored is left untouched."""
        if not conversation_id:
            raise PersistenceError("A conversation id is required")

        doc = self._message_to_doc(conversation_id, message)
        await self._run(
            lambda: self.message_collection.insert(doc, overwrite_mode="ignore"),
            "store message"
        )

    async def load_history(self, conversation_id: str) -> List[Message]:
        """Load the messages of a conversation, oldest first."""
        query = """
        FOR message IN @@message_collection
            FILTER message.conversation_id == @conversation_id
            SORT message.timestamp ASC, message.stored_at ASC
            RETURN message
        """
        bind_vars = {
            "@message_collection": self.message_collection_name,
            "conversation_id": conversation_id,
        }

        def execute() -> List[Dict[str, Any]]:
            return list(self.db.aql.execute(query, bind_vars=bind_vars))

        docs = await self._run(execute, "load history")
        return [self._doc_to_message(doc) for doc in docs]

    async def end_conversation(self, conversation_id: str) -> None:
        """Mark the conversation document as ended."""
        update = {
            "_key": conversation_id,
            "ended_at": int(time.time() * 1000),
            "status": "ended",
        }
        await self._run(lambda: self.conversation_collection.update(update), "end conversation")
        self.logger.info(f"Ended conversation {conversation_id}")

    async def save_session_state(self, state: SessionState) -> None:
        """Replace the stored snapshot of a conversation."""
        doc = state.model_dump(mode="json")
        doc["_key"] = state.conversation_id
        await self._run(
            lambda: self.state_collection.insert(doc, overwrite=True),
            "save session state"
        )

    async def load_session_state(self, conversation_id: str) -> Optional[SessionState]:
        """Load the stored snapshot of a conversation."""
        doc = await self._run(lambda: self.state_collection.get(conversation_id), "load session state")
        if not doc:
            return None
        fields = {key: value for key, value in doc.items() if key in SessionState.model_fields}
        return SessionState.model_validate(fields)
