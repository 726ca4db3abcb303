"""
History Store for Icebreaker

This module provides persistence for conversations, so that a session can be
reviewed or resumed after a restart.
"""

from icebreaker.memory.base import HistoryStore, PersistenceError
from icebreaker.memory.inmemory import InMemoryStore
from icebreaker.memory.arangodb_store import ArangoDBStore

__all__ = ["HistoryStore", "PersistenceError", "InMemoryStore", "ArangoDBStore"]
