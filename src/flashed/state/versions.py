"""
Version history and undo/redo for artifact content.

The ledger subscribes to the session store and records an entry whenever an
artifact settles complete, or has content put back into it by anything other
than its own restore, undo and redo, with html it has not seen before.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Generic, Iterable, List, Optional, Tuple, TypeVar

from ..util import generate_id
from .events import ContentRestored, JobSettled, StoreEvent
from .models import JobStatus, VersionEntry
from .store import SessionStore, StateError, StoreState

logger = logging.getLogger(__name__)

INITIAL_LABEL = "Initial generation"
REFINEMENT_LABEL = "Refinement"

T = TypeVar("T")


class UndoStack(Generic[T]):
    """
    Linear undo history with a cursor.

    Pushing after an undo discards the redo branch. The oldest entry is dropped
    once the history exceeds `max_size`.
    """

    def __init__(self, max_size: int = 50) -> None:
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self._max_size = max_size
        self._items: List[T] = []
        self._index = -1

    def __len__(self) -> int:
        return len(self._items)

    @property
    def current(self) -> Optional[T]:
        if self._index < 0:
            return None
        return self._items[self._index]

    @property
    def can_undo(self) -> bool:
        return self._index > 0

    @property
    def can_redo(self) -> bool:
        return self._index < len(self._items) - 1

    def push(self, item: T) -> None:
        del self._items[self._index + 1:]
        self._items.append(item)
        if len(self._items) > self._max_size:
            del self._items[: len(self._items) - self._max_size]
        self._index = len(self._items) - 1

    def undo(self) -> Optional[T]:
        if not self.can_undo:
            return None
        self._index -= 1
        return self._items[self._index]

    def redo(self) -> Optional[T]:
        if not self.can_redo:
            return None
        self._index += 1
        return self._items[self._index]

    def clear(self) -> None:
        self._items.clear()
        self._index = -1


class VersionLedger:
    """
    Append-only per-artifact history of completed content.

    Entries are kept newest-last and bounded to `max_entries` overall. Each
    artifact also gets its own UndoStack of labelled snapshots.
    """

    def __init__(
        self,
        store: SessionStore,
        *,
        entries: Iterable[VersionEntry] = (),
        max_entries: int = 100,
        max_undo: int = 50,
    ) -> None:
        self._store = store
        self._max_entries = max_entries
        self._max_undo = max_undo
        self._entries: List[VersionEntry] = list(entries)[-max_entries:]
        self._undo: Dict[str, UndoStack[VersionEntry]] = {}
        self._listeners: List[Callable[[VersionEntry], None]] = []
        self._restoring = False
        self._unsubscribe = store.subscribe(self._on_event)

    @property
    def entries(self) -> Tuple[VersionEntry, ...]:
        return tuple(self._entries)

    def close(self) -> None:
        self._unsubscribe()

    def on_record(self, listener: Callable[[VersionEntry], None]) -> None:
        self._listeners.append(listener)

    def history(self, artifact_id: str) -> Tuple[VersionEntry, ...]:
        """Entries for one artifact, newest first."""
        return tuple(reversed([entry for entry in self._entries if entry.artifact_id == artifact_id]))

    def entry(self, entry_id: str) -> VersionEntry:
        for item in self._entries:
            if item.id == entry_id:
                return item
        raise StateError(f"Unknown version {entry_id}")

    def undo_stack(self, artifact_id: str) -> UndoStack[VersionEntry]:
        stack = self._undo.get(artifact_id)
        if stack is None:
            stack = UndoStack(self._max_undo)
            self._undo[artifact_id] = stack
        return stack

    def restore(self, session_id: str, entry: VersionEntry) -> VersionEntry:
        """
        Put an earlier version back into the artifact and record the restore on its undo stack.

        Raises StateError while the artifact has a job in flight.
        """
        self._check_settled(session_id, entry.artifact_id)
        self._put_back(session_id, entry.artifact_id, entry.html)
        snapshot = VersionEntry(
            id=generate_id("ver-"),
            artifact_id=entry.artifact_id,
            html=entry.html,
            label=f"Restored: {entry.label or 'previous version'}",
        )
        self.undo_stack(entry.artifact_id).push(snapshot)
        logger.info("Restored artifact %s to version %s", entry.artifact_id, entry.id)
        return snapshot

    def undo(self, session_id: str, artifact_id: str) -> Optional[VersionEntry]:
        stack = self.undo_stack(artifact_id)
        if not stack.can_undo:
            return None
        self._check_settled(session_id, artifact_id)
        target = stack.undo()
        self._put_back(session_id, artifact_id, target.html)
        return target

    def redo(self, session_id: str, artifact_id: str) -> Optional[VersionEntry]:
        stack = self.undo_stack(artifact_id)
        if not stack.can_redo:
            return None
        self._check_settled(session_id, artifact_id)
        target = stack.redo()
        self._put_back(session_id, artifact_id, target.html)
        return target

    def _check_settled(self, session_id: str, artifact_id: str) -> None:
        artifact = self._store.session(session_id).artifact(artifact_id)
        if artifact is None:
            raise StateError(f"Unknown artifact {artifact_id} in session {session_id}")
        if artifact.status.is_active:
            raise StateError(f"Artifact {artifact_id} is still generating")

    def _put_back(self, session_id: str, artifact_id: str, html: str) -> None:
        # Content moved by the ledger itself is already on the undo stack.
        self._restoring = True
        try:
            self._store.apply(ContentRestored(session_id=session_id, target_id=artifact_id, html=html))
        finally:
            self._restoring = False

    def _on_event(self, event: StoreEvent, previous: StoreState, current: StoreState) -> None:
        if self._restoring:
            return
        if isinstance(event, JobSettled):
            if event.status is not JobStatus.COMPLETE:
                return
        elif not isinstance(event, ContentRestored):
            return
        session = current.find(event.session_id)
        if session is None or session.artifact(event.target_id) is None:
            # Site pages are not versioned.
            return
        self.record(event.target_id, event.html)

    def record(self, artifact_id: str, html: str, label: Optional[str] = None) -> Optional[VersionEntry]:
        """Append a version unless identical content is already recorded for the artifact."""
        existing = [entry for entry in self._entries if entry.artifact_id == artifact_id]
        if any(entry.html == html for entry in existing):
            logger.debug("Skipping duplicate version for %s", artifact_id)
            return None
        entry = VersionEntry(
            id=generate_id("ver-"),
            artifact_id=artifact_id,
            html=html,
            label=label or (REFINEMENT_LABEL if existing else INITIAL_LABEL),
        )
        self._entries.append(entry)
        if len(self._entries) > self._max_entries:
            del self._entries[: len(self._entries) - self._max_entries]
        self.undo_stack(artifact_id).push(entry)
        for listener in list(self._listeners):
            try:
                listener(entry)
            except Exception:
                logger.exception("Version listener failed for %s", artifact_id)
        return entry
