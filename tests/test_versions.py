import pytest

from flashed.state import (
    Artifact,
    ContentProgress,
    ContentRestored,
    JobRestarted,
    JobSettled,
    JobStatus,
    Session,
    SessionCreated,
    SessionStore,
    StateError,
    UndoStack,
    VersionEntry,
    VersionLedger,
)


def _settle(store: SessionStore, html: str, status: JobStatus = JobStatus.COMPLETE) -> None:
    store.apply(JobSettled(session_id="sess-1", target_id="art-0", status=status, html=html))


@pytest.fixture
def ledger(store: SessionStore) -> VersionLedger:
    store.apply(SessionCreated(session=Session(id="sess-1", prompt="cafe", artifacts=(Artifact(id="art-0"),))))
    return VersionLedger(store)


def _refine(store: SessionStore, html: str) -> None:
    store.apply(JobRestarted(session_id="sess-1", target_id="art-0"))
    _settle(store, html)


def test_undo_stack_is_linear() -> None:
    stack: UndoStack[str] = UndoStack(max_size=10)
    for item in ("a", "b", "c"):
        stack.push(item)

    assert stack.undo() == "b"
    assert stack.undo() == "a"
    assert stack.undo() is None
    assert stack.redo() == "b"

    stack.push("d")
    assert not stack.can_redo
    assert stack.undo() == "b"
    assert stack.undo() == "a"


def test_undo_stack_drops_oldest_entries() -> None:
    stack: UndoStack[int] = UndoStack(max_size=3)
    for item in range(5):
        stack.push(item)
    assert len(stack) == 3
    assert stack.current == 4
    assert stack.undo() == 3
    assert stack.undo() == 2
    assert not stack.can_undo


def test_ledger_records_completions_with_labels(store: SessionStore, ledger: VersionLedger) -> None:
    _settle(store, "<html>v1</html>")
    _refine(store, "<html>v2</html>")

    history = ledger.history("art-0")
    assert [entry.html for entry in history] == ["<html>v2</html>", "<html>v1</html>"]
    assert [entry.label for entry in history] == ["Refinement", "Initial generation"]


def test_ledger_ignores_errors_and_duplicates(store: SessionStore, ledger: VersionLedger) -> None:
    _settle(store, "oops", status=JobStatus.ERROR)
    assert ledger.entries == ()

    _refine(store, "<html>v1</html>")
    store.apply(ContentRestored(session_id="sess-1", target_id="art-0", html="<html>v1</html>"))
    assert len(ledger.history("art-0")) == 1


def test_ledger_is_bounded(store: SessionStore) -> None:
    store.apply(SessionCreated(session=Session(id="sess-1", prompt="cafe", artifacts=(Artifact(id="art-0"),))))
    ledger = VersionLedger(store, max_entries=3)
    _settle(store, "v0")
    for i in range(1, 5):
        _refine(store, f"v{i}")
    assert [entry.html for entry in ledger.entries] == ["v2", "v3", "v4"]


def test_undo_and_redo_restore_content(store: SessionStore, ledger: VersionLedger) -> None:
    _settle(store, "v1")
    _refine(store, "v2")
    _refine(store, "v3")

    assert ledger.undo("sess-1", "art-0").html == "v2"
    assert store.session("sess-1").artifact("art-0").html == "v2"
    assert ledger.undo("sess-1", "art-0").html == "v1"
    assert ledger.undo("sess-1", "art-0") is None
    assert ledger.redo("sess-1", "art-0").html == "v2"
    assert store.session("sess-1").artifact("art-0").html == "v2"
    assert len(ledger.entries) == 3


def test_restore_puts_old_version_back(store: SessionStore, ledger: VersionLedger) -> None:
    _settle(store, "v1")
    _refine(store, "v2")
    first = ledger.history("art-0")[-1]

    snapshot = ledger.restore("sess-1", first)

    artifact = store.session("sess-1").artifact("art-0")
    assert artifact.html == "v1"
    assert artifact.status is JobStatus.COMPLETE
    assert snapshot.label == "Restored: Initial generation"
    assert ledger.undo_stack("art-0").current == snapshot
    assert ledger.entry(first.id) == first
    with pytest.raises(StateError):
        ledger.entry("ver-missing")


def test_record_listener_and_close(store: SessionStore, ledger: VersionLedger) -> None:
    seen = []
    ledger.on_record(seen.append)
    _settle(store, "v1")
    assert [entry.html for entry in seen] == ["v1"]

    ledger.close()
    _refine(store, "v2")
    assert len(seen) == 1


def test_ledger_starts_from_loaded_entries(store: SessionStore) -> None:
    loaded = [VersionEntry(id="ver-1", artifact_id="art-0", html="v1", label="Initial generation")]
    store.apply(SessionCreated(session=Session(id="sess-1", prompt="cafe", artifacts=(Artifact(id="art-0"),))))
    ledger = VersionLedger(store, entries=loaded)

    _settle(store, "v1")
    assert ledger.entries == tuple(loaded)


def test_undo_keeps_redo_branch_after_entries_are_evicted(store: SessionStore) -> None:
    artifacts = (Artifact(id="art-0"), Artifact(id="art-1"))
    store.apply(SessionCreated(session=Session(id="sess-1", prompt="cafe", artifacts=artifacts)))
    ledger = VersionLedger(store, max_entries=2)
    _settle(store, "a1")
    _refine(store, "a2")
    store.apply(JobSettled(session_id="sess-1", target_id="art-1", status=JobStatus.COMPLETE, html="b1"))
    store.apply(JobRestarted(session_id="sess-1", target_id="art-1"))
    store.apply(JobSettled(session_id="sess-1", target_id="art-1", status=JobStatus.COMPLETE, html="b2"))
    assert ledger.history("art-0") == ()

    assert ledger.undo("sess-1", "art-0").html == "a1"
    assert ledger.undo_stack("art-0").can_redo
    assert ledger.redo("sess-1", "art-0").html == "a2"
    assert store.session("sess-1").artifact("art-0").html == "a2"
    assert [entry.html for entry in ledger.entries] == ["b1", "b2"]


def test_restore_pushes_a_single_snapshot(store: SessionStore) -> None:
    store.apply(SessionCreated(session=Session(id="sess-1", prompt="cafe", artifacts=(Artifact(id="art-0"),))))
    ledger = VersionLedger(store, max_entries=1)
    _settle(store, "v1")
    first = ledger.history("art-0")[0]
    _refine(store, "v2")

    ledger.restore("sess-1", first)

    stack = ledger.undo_stack("art-0")
    assert len(stack) == 3
    assert stack.current.label == "Restored: Initial generation"
    assert [entry.html for entry in ledger.entries] == ["v2"]


def test_restore_is_refused_while_a_job_is_in_flight(store: SessionStore, ledger: VersionLedger) -> None:
    _settle(store, "v1")
    first = ledger.history("art-0")[0]
    _refine(store, "v2")
    store.apply(JobRestarted(session_id="sess-1", target_id="art-0"))
    store.apply(ContentProgress(session_id="sess-1", target_id="art-0", html="<html>v3"))

    with pytest.raises(StateError):
        ledger.restore("sess-1", first)
    with pytest.raises(StateError):
        ledger.undo("sess-1", "art-0")

    _settle(store, "v3")
    artifact = store.session("sess-1").artifact("art-0")
    assert artifact.html == "v3"
    assert [entry.html for entry in ledger.history("art-0")] == ["v3", "v2", "v1"]
