"""
Saving and loading sessions and version history through a key-value store.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from ..pipeline.accumulator import render_error_html
from ..state.events import ContentProgress, StoreEvent
from ..state.models import JobStatus, Session, VersionEntry
from ..state.store import SessionStore, StoreState
from ..state.versions import VersionLedger
from .store import KeyValueStore, StorageError

logger = logging.getLogger(__name__)

SESSIONS_KEY = "sessions"
VERSIONS_KEY = "versionHistory"
DRAFT_KEY = "draft"
INTERRUPTED_MESSAGE = "Generation was interrupted before it finished"


def _load_list(kv: KeyValueStore, key: str) -> List[Any]:
    try:
        payload = kv.read(key)
    except StorageError as exc:
        logger.warning("Ignoring stored %s: %s", key, exc)
        return []
    if payload is None:
        return []
    if not isinstance(payload, list):
        logger.warning("Ignoring stored %s: expected a list, got %s", key, type(payload).__name__)
        return []
    return payload


def load_sessions(kv: KeyValueStore, *, limit: int = 10) -> Tuple[Session, ...]:
    """
    Most recent `limit` stored sessions. Entries that fail validation are skipped.
    """
    sessions = []
    for item in _load_list(kv, SESSIONS_KEY):
        try:
            sessions.append(_settle_interrupted(Session.model_validate(item)))
        except ValidationError as exc:
            logger.warning("Skipping invalid stored session: %s", exc.errors()[0].get("msg", exc))
    return tuple(sessions[-limit:])


def _settle_interrupted(session: Session) -> Session:
    """Jobs do not survive the process, so anything still in flight is loaded as an error."""

    def _settle(target):
        if not target.status.is_active:
            return target
        return target.model_copy(update={"status": JobStatus.ERROR, "html": render_error_html(INTERRUPTED_MESSAGE)})

    update = {"artifacts": tuple(_settle(art) for art in session.artifacts)}
    if session.site is not None:
        update["site"] = session.site.model_copy(update={"pages": tuple(_settle(page) for page in session.site.pages)})
    return session.model_copy(update=update)


def load_versions(kv: KeyValueStore, *, limit: int = 100) -> Tuple[VersionEntry, ...]:
    entries = []
    for item in _load_list(kv, VERSIONS_KEY):
        try:
            entries.append(VersionEntry.model_validate(item))
        except ValidationError as exc:
            logger.warning("Skipping invalid stored version: %s", exc.errors()[0].get("msg", exc))
    return tuple(entries[-limit:])


class SessionPersistence:
    """
    Mirrors the store (and optionally the version ledger) into a key-value store.

    Sessions are written after every event except streaming progress. Storage
    failures are logged and never reach the caller.
    """

    def __init__(
        self,
        store: SessionStore,
        kv: KeyValueStore,
        *,
        ledger: Optional[VersionLedger] = None,
        max_sessions: int = 10,
        max_versions: int = 100,
    ) -> None:
        self.kv = kv
        self.ledger = ledger
        self.max_sessions = max_sessions
        self.max_versions = max_versions
        self._unsubscribe = store.subscribe(self._on_event)
        if ledger is not None:
            ledger.on_record(lambda _entry: self.save_versions(ledger.entries))

    def close(self) -> None:
        self._unsubscribe()

    def _on_event(self, event: StoreEvent, previous: StoreState, current: StoreState) -> None:
        if isinstance(event, ContentProgress):
            return
        self.save_sessions(current.sessions)

    def save_sessions(self, sessions: Iterable[Session]) -> bool:
        recent = list(sessions)[-self.max_sessions:]
        return self._write(SESSIONS_KEY, [session.model_dump(mode="json") for session in recent])

    def save_versions(self, entries: Iterable[VersionEntry]) -> bool:
        recent = list(entries)[-self.max_versions:]
        return self._write(VERSIONS_KEY, [entry.model_dump(mode="json") for entry in recent])

    def _write(self, key: str, value: Any) -> bool:
        try:
            self.kv.write(key, value)
        except StorageError as exc:
            logger.warning("Failed to save %s: %s", key, exc)
            return False
        return True
