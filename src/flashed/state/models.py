"""
Immutable data model for sessions, artifacts, sites and version history.

Every model is frozen; updates produce new values via `model_copy(update=...)`
so a snapshot handed to a consumer never changes underneath it.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal, Optional, Tuple

from pydantic import BaseModel, Field, model_validator

from ..util import utc_now

PLACEHOLDER_STYLE = "Designing..."


class JobStatus(str, Enum):
    """Lifecycle shared by artifacts and site pages."""

    PENDING = "pending"
    STREAMING = "streaming"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETE, JobStatus.ERROR)

    @property
    def is_active(self) -> bool:
        return self in (JobStatus.PENDING, JobStatus.STREAMING)


class _Frozen(BaseModel):
    model_config = {"frozen": True}


class SEOSettings(_Frozen):
    title: str
    description: str = ""
    og_image: Optional[str] = None
    favicon: Optional[str] = None


class PublishInfo(_Frozen):
    """Where a document was published, as reported by the publishing backend."""
    url: str
    short_id: str
    published_at: datetime = Field(default_factory=utc_now)
    version: int = 1


class Artifact(_Frozen):
    """
    One generated variant within a session.

    Attributes:
        id: Identifier, unique across sessions.
        style_name: Human-readable style descriptor (placeholder until styles are decided).
        html: Accumulated document content, or a diagnostic when status is error.
        status: Job lifecycle state.
        seo: Optional SEO metadata attached by collaborators.
        publish_info: Set once the artifact has been published.
    """
    id: str
    style_name: str = PLACEHOLDER_STYLE
    html: str = ""
    status: JobStatus = JobStatus.PENDING
    seo: Optional[SEOSettings] = None
    publish_info: Optional[PublishInfo] = None


class SitePage(_Frozen):
    id: str
    name: str
    slug: str
    html: str = ""
    status: JobStatus = JobStatus.PENDING
    is_home: bool = False


class Site(_Frozen):
    """
    A multi-page site. Exactly one page is the home page, and it comes first.
    """
    id: str
    name: str
    style_name: str = PLACEHOLDER_STYLE
    pages: Tuple[SitePage, ...] = ()
    seo: Optional[SEOSettings] = None
    publish_info: Optional[PublishInfo] = None

    @model_validator(mode="after")
    def _check_single_home(self) -> "Site":
        homes = [page for page in self.pages if page.is_home]
        if self.pages and len(homes) != 1:
            raise ValueError(f"A site needs exactly one home page, found {len(homes)}")
        if self.pages and not self.pages[0].is_home:
            raise ValueError("The home page must be the first page of a site")
        return self

    @property
    def home(self) -> Optional[SitePage]:
        return next((page for page in self.pages if page.is_home), None)

    def page(self, page_id: str) -> Optional[SitePage]:
        return next((page for page in self.pages if page.id == page_id), None)


class Session(_Frozen):
    """
    One user request and everything generated for it.
    """
    id: str
    prompt: str
    created_at: datetime = Field(default_factory=utc_now)
    mode: Literal["single", "site"] = "single"
    artifacts: Tuple[Artifact, ...] = ()
    site: Optional[Site] = None
    variant_count: Optional[int] = None

    def artifact(self, artifact_id: str) -> Optional[Artifact]:
        return next((art for art in self.artifacts if art.id == artifact_id), None)

    def completed_artifacts(self) -> Tuple[Artifact, ...]:
        return tuple(art for art in self.artifacts if art.status is JobStatus.COMPLETE)


class VersionEntry(_Frozen):
    id: str
    artifact_id: str
    html: str
    timestamp: datetime = Field(default_factory=utc_now)
    label: Optional[str] = None


class Draft(_Frozen):
    """Autosaved input that has not been submitted yet."""
    id: str
    prompt: str
    image_data: Optional[str] = None
    brand_kit_id: Optional[str] = None
    site_mode: bool = False
    page_structure: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)
