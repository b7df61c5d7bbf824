"""
Events accepted by the session store.

Job callbacks never touch session data directly; they describe what happened
as one of these events and hand it to `SessionStore.apply`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple, Union

from .models import JobStatus, PublishInfo, SEOSettings, Session, Site, SitePage


@dataclass(frozen=True)
class SessionCreated:
    session: Session


@dataclass(frozen=True)
class StylesAssigned:
    """Phase 1 result: one style label per artifact, in artifact order."""
    session_id: str
    styles: Tuple[str, ...]


@dataclass(frozen=True)
class SiteStyleAssigned:
    session_id: str
    style_name: str


@dataclass(frozen=True)
class ContentProgress:
    """The full accumulated buffer of a running job after one more chunk."""
    session_id: str
    target_id: str
    html: str


@dataclass(frozen=True)
class JobSettled:
    session_id: str
    target_id: str
    status: JobStatus
    html: str


@dataclass(frozen=True)
class JobRestarted:
    """An explicit new job for a target that already settled (refinement, resubmission)."""
    session_id: str
    target_id: str


@dataclass(frozen=True)
class ContentRestored:
    session_id: str
    target_id: str
    html: str


@dataclass(frozen=True)
class PageAdded:
    session_id: str
    page: SitePage


@dataclass(frozen=True)
class SiteUpgraded:
    session_id: str
    site: Site


@dataclass(frozen=True)
class PublishAttached:
    session_id: str
    target_id: str
    publish_info: PublishInfo
    seo: Optional[SEOSettings] = None


StoreEvent = Union[
    SessionCreated,
    StylesAssigned,
    SiteStyleAssigned,
    ContentProgress,
    JobSettled,
    JobRestarted,
    ContentRestored,
    PageAdded,
    SiteUpgraded,
    PublishAttached,
]
