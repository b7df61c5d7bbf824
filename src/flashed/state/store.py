"""
The session store: one owner of all session state, mutated only through `apply`.

`reduce(state, event)` is a pure function from the previous snapshot to the next.
`SessionStore.apply` is synchronous, so on a single event loop every job callback
is serialized through it and sibling jobs cannot race on shared fields.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Type

from .events import (
    ContentProgress,
    ContentRestored,
    JobRestarted,
    JobSettled,
    PageAdded,
    PublishAttached,
    SessionCreated,
    SiteStyleAssigned,
    SiteUpgraded,
    StoreEvent,
    StylesAssigned,
)
from .models import Artifact, JobStatus, Session, SitePage

logger = logging.getLogger(__name__)


class StateError(RuntimeError):
    """Raised when an operation references unknown state or is not allowed in the current state."""


@dataclass(frozen=True)
class StoreState:
    sessions: Tuple[Session, ...] = ()

    def find(self, session_id: str) -> Optional[Session]:
        return next((session for session in self.sessions if session.id == session_id), None)


Listener = Callable[[StoreEvent, StoreState, StoreState], None]


class SessionStore:
    """
    Holds the current StoreState and notifies listeners after each applied event.

    Listeners receive (event, previous, current). A failing listener is logged and
    never prevents the state change or other listeners from running.
    """

    def __init__(self, sessions: Iterable[Session] = ()) -> None:
        self._state = StoreState(sessions=tuple(sessions))
        self._listeners: List[Listener] = []

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def sessions(self) -> Tuple[Session, ...]:
        return self._state.sessions

    def session(self, session_id: str) -> Session:
        session = self._state.find(session_id)
        if session is None:
            raise StateError(f"Unknown session {session_id}")
        return session

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def apply(self, event: StoreEvent) -> StoreState:
        previous = self._state
        current = reduce(previous, event)
        if current is previous:
            return current
        self._state = current
        for listener in list(self._listeners):
            try:
                listener(event, previous, current)
            except Exception:
                logger.exception("Store listener %r failed on %s", listener, type(event).__name__)
        return current


def reduce(state: StoreState, event: StoreEvent) -> StoreState:
    """
    Return the state after `event`. Events that do not apply return `state` unchanged.
    """
    handler = _REDUCERS.get(type(event))
    if handler is None:
        raise StateError(f"Unsupported event type {type(event).__name__}")
    if isinstance(event, SessionCreated):
        return handler(state, event)

    session = state.find(event.session_id)
    if session is None:
        logger.debug("Ignoring %s for unknown session %s", type(event).__name__, event.session_id)
        return state
    updated = handler(session, event)
    if updated is session:
        return state
    return replace(
        state,
        sessions=tuple(updated if existing.id == session.id else existing for existing in state.sessions),
    )


def _session_created(state: StoreState, event: SessionCreated) -> StoreState:
    if state.find(event.session.id) is not None:
        raise StateError(f"Session {event.session.id} already exists")
    return replace(state, sessions=state.sessions + (event.session,))


def _styles_assigned(session: Session, event: StylesAssigned) -> Session:
    if len(event.styles) != len(session.artifacts):
        raise StateError(
            f"Expected {len(session.artifacts)} styles for session {session.id}, got {len(event.styles)}"
        )
    artifacts = tuple(
        art.model_copy(update={"style_name": style}) for art, style in zip(session.artifacts, event.styles)
    )
    return session.model_copy(update={"artifacts": artifacts})


def _site_style_assigned(session: Session, event: SiteStyleAssigned) -> Session:
    if session.site is None:
        return session
    return session.model_copy(update={"site": session.site.model_copy(update={"style_name": event.style_name})})


def _content_progress(session: Session, event: ContentProgress) -> Session:
    def _update(target):
        if not target.status.is_active:
            # Late chunk from a job that already settled.
            return target
        if len(event.html) < len(target.html):
            logger.debug("Ignoring shrinking buffer for %s", target.id)
            return target
        return target.model_copy(update={"html": event.html, "status": JobStatus.STREAMING})

    return _update_target(session, event.target_id, _update)


def _job_settled(session: Session, event: JobSettled) -> Session:
    if not event.status.is_terminal:
        raise StateError(f"Cannot settle {event.target_id} with non-terminal status {event.status.value}")

    def _update(target):
        if not target.status.is_active:
            logger.debug("Ignoring duplicate settlement for %s", target.id)
            return target
        return target.model_copy(update={"html": event.html, "status": event.status})

    return _update_target(session, event.target_id, _update)


def _job_restarted(session: Session, event: JobRestarted) -> Session:
    def _update(target):
        if target.status.is_active:
            raise StateError(f"{target.id} already has a job in flight")
        return target.model_copy(update={"html": "", "status": JobStatus.PENDING})

    return _update_target(session, event.target_id, _update)


def _content_restored(session: Session, event: ContentRestored) -> Session:
    def _update(target):
        return target.model_copy(update={"html": event.html, "status": JobStatus.COMPLETE})

    return _update_target(session, event.target_id, _update)


def _page_added(session: Session, event: PageAdded) -> Session:
    if session.site is None:
        raise StateError(f"Session {session.id} has no site to add pages to")
    if event.page.is_home:
        raise StateError("A site already has a home page")
    site = session.site.model_copy(update={"pages": session.site.pages + (event.page,)})
    return session.model_copy(update={"site": site})


def _site_upgraded(session: Session, event: SiteUpgraded) -> Session:
    if session.site is not None:
        raise StateError(f"Session {session.id} is already a site")
    return session.model_copy(update={"mode": "site", "site": event.site})


def _publish_attached(session: Session, event: PublishAttached) -> Session:
    update = {"publish_info": event.publish_info}
    if event.seo is not None:
        update["seo"] = event.seo

    if session.site is not None and session.site.id == event.target_id:
        return session.model_copy(update={"site": session.site.model_copy(update=update)})

    def _artifact_only(target):
        if not isinstance(target, Artifact):
            raise StateError("Only artifacts and whole sites can be published")
        return target.model_copy(update=update)

    return _update_target(session, event.target_id, _artifact_only)


def _update_target(session: Session, target_id: str, update: Callable) -> Session:
    """Apply `update` to the artifact or site page with `target_id`."""
    for index, art in enumerate(session.artifacts):
        if art.id == target_id:
            new_art = update(art)
            if new_art is art:
                return session
            artifacts = session.artifacts[:index] + (new_art,) + session.artifacts[index + 1:]
            return session.model_copy(update={"artifacts": artifacts})

    if session.site is not None:
        for index, page in enumerate(session.site.pages):
            if page.id == target_id:
                new_page: SitePage = update(page)
                if new_page is page:
                    return session
                pages = session.site.pages[:index] + (new_page,) + session.site.pages[index + 1:]
                return session.model_copy(update={"site": session.site.model_copy(update={"pages": pages})})

    logger.debug("Ignoring event for unknown target %s in session %s", target_id, session.id)
    return session


_REDUCERS: Dict[Type, Callable] = {
    SessionCreated: _session_created,
    StylesAssigned: _styles_assigned,
    SiteStyleAssigned: _site_style_assigned,
    ContentProgress: _content_progress,
    JobSettled: _job_settled,
    JobRestarted: _job_restarted,
    ContentRestored: _content_restored,
    PageAdded: _page_added,
    SiteUpgraded: _site_upgraded,
    PublishAttached: _publish_attached,
}
