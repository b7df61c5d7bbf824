"""
Session state: immutable models, store events, the reducer and version history.
"""

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
from .models import (
    PLACEHOLDER_STYLE,
    Artifact,
    Draft,
    JobStatus,
    PublishInfo,
    SEOSettings,
    Session,
    Site,
    SitePage,
    VersionEntry,
)
from .store import SessionStore, StateError, StoreState, reduce
from .versions import UndoStack, VersionLedger

__all__ = [
    "ContentProgress",
    "ContentRestored",
    "JobRestarted",
    "JobSettled",
    "PageAdded",
    "PublishAttached",
    "SessionCreated",
    "SiteStyleAssigned",
    "SiteUpgraded",
    "StoreEvent",
    "StylesAssigned",
    "PLACEHOLDER_STYLE",
    "Artifact",
    "Draft",
    "JobStatus",
    "PublishInfo",
    "SEOSettings",
    "Session",
    "Site",
    "SitePage",
    "VersionEntry",
    "SessionStore",
    "StateError",
    "StoreState",
    "reduce",
    "UndoStack",
    "VersionLedger",
]
