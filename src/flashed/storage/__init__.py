"""
Persistence for sessions, version history and drafts.
"""

from .drafts import DraftKeeper
from .persistence import (
    DRAFT_KEY,
    INTERRUPTED_MESSAGE,
    SESSIONS_KEY,
    VERSIONS_KEY,
    SessionPersistence,
    load_sessions,
    load_versions,
)
from .store import JsonFileStore, KeyValueStore, MemoryStore, StorageError

__all__ = [
    "DraftKeeper",
    "DRAFT_KEY",
    "INTERRUPTED_MESSAGE",
    "SESSIONS_KEY",
    "VERSIONS_KEY",
    "SessionPersistence",
    "load_sessions",
    "load_versions",
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
    "StorageError",
]
