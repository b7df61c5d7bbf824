"""
Multi-page site generation.

Pages are generated one after another, home first. Every later page gets the
finished home page as a style reference, so sites always run sequentially
whatever the batch width.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence, Tuple

from ..config import EngineConfig
from ..llm.client import CompletionClient, CompletionRequest
from ..llm.prompts import build_site_page_prompt
from ..state.events import PageAdded, SessionCreated, SiteStyleAssigned, SiteUpgraded
from ..state.models import JobStatus, Session, Site, SitePage
from ..state.store import SessionStore, StateError
from ..util import generate_id, page_slug, sanitize_prompt, truncate
from .executor import GenerationRequest, build_scheduler, store_callbacks
from .job import Job, JobOutcome
from .scheduler import BatchScheduler
from .styles import decide_site_style

logger = logging.getLogger(__name__)

DEFAULT_PAGES: Tuple[str, ...] = ("Home", "About", "Contact")
SITE_NAME_LENGTH = 50


def plan_pages(page_names: Optional[Iterable[str]] = None) -> Tuple[SitePage, ...]:
    """
    Pending pages for a new site. The first name becomes the home page.

    Blank names are dropped; repeated slugs get a numeric suffix.
    """
    names = [name.strip() for name in (page_names or ()) if name and name.strip()]
    if not names:
        names = list(DEFAULT_PAGES)
    pages = []
    seen: set[str] = set()
    for index, name in enumerate(names):
        slug = _unique_slug(page_slug(name), seen)
        pages.append(SitePage(id=generate_id("page-"), name=name, slug=slug, is_home=index == 0))
    return tuple(pages)


def _unique_slug(slug: str, seen: set[str]) -> str:
    candidate = slug
    suffix = 2
    while candidate in seen:
        candidate = f"{slug}-{suffix}"
        suffix += 1
    seen.add(candidate)
    return candidate


def upgrade_to_site(store: SessionStore, session_id: str, artifact_id: str) -> Site:
    """
    Turn a complete artifact into a site whose only page is that artifact as home.

    Raises:
        StateError: If the artifact is unknown or not complete, or the session already has a site.
    """
    session = store.session(session_id)
    artifact = session.artifact(artifact_id)
    if artifact is None:
        raise StateError(f"Unknown artifact {artifact_id} in session {session_id}")
    if artifact.status is not JobStatus.COMPLETE:
        raise StateError(f"Only complete artifacts can become a site ({artifact_id} is {artifact.status.value})")
    home = SitePage(
        id=generate_id("page-"),
        name="Home",
        slug="home",
        html=artifact.html,
        status=JobStatus.COMPLETE,
        is_home=True,
    )
    site = Site(
        id=generate_id("site-"),
        name=truncate(session.prompt, SITE_NAME_LENGTH),
        style_name=artifact.style_name,
        pages=(home,),
    )
    store.apply(SiteUpgraded(session_id=session_id, site=site))
    logger.info("Session %s upgraded to a site from artifact %s", session_id, artifact_id)
    return site


class SiteSequencer:
    def __init__(
        self,
        store: SessionStore,
        client: CompletionClient,
        *,
        config: Optional[EngineConfig] = None,
        scheduler: Optional[BatchScheduler] = None,
    ) -> None:
        self.store = store
        self.client = client
        self.config = config or EngineConfig()
        self.scheduler = scheduler or build_scheduler(self.config)

    async def generate_site(self, request: GenerationRequest, page_names: Optional[Sequence[str]] = None) -> Session:
        """
        Create a site session, decide one shared style and generate every page in order.

        A failed page is left in error and the remaining pages still run.
        """
        prompt = sanitize_prompt(request.prompt).strip()
        if not prompt:
            raise ValueError("Prompt must not be empty")
        pages = plan_pages(page_names)
        site = Site(id=generate_id("site-"), name=truncate(prompt, SITE_NAME_LENGTH), pages=pages)
        session = Session(id=generate_id("sess-"), prompt=prompt, mode="site", site=site)
        self.store.apply(SessionCreated(session=session))
        logger.info("Session %s: generating site with pages %s", session.id, ", ".join(p.name for p in pages))

        style = await decide_site_style(self.scheduler.wrap_client(self.client), prompt, url=request.url)
        self.store.apply(SiteStyleAssigned(session_id=session.id, style_name=style))

        page_list = [(page.name, page.slug) for page in pages]
        brand_kit = request.brand_kit or self.config.brand_kit
        home_html: Optional[str] = None
        for page in pages:
            outcome = await self._run_page(
                session.id,
                page,
                build_site_page_prompt(
                    prompt,
                    style,
                    page_name=page.name,
                    page_slug=page.slug,
                    is_home=page.is_home,
                    pages=page_list,
                    brand_kit=brand_kit,
                    home_html=home_html,
                ),
            )
            if page.is_home and outcome.ok:
                home_html = outcome.html
        return self.store.session(session.id)

    async def add_page(self, session_id: str, page_name: str) -> SitePage:
        """
        Append one page to an existing site and generate it against the current home page.
        """
        session = self.store.session(session_id)
        if session.site is None:
            raise StateError(f"Session {session_id} is not a site")
        name = (page_name or "").strip()
        if not name:
            raise ValueError("Page name must not be empty")
        site = session.site
        slug = _unique_slug(page_slug(name), {page.slug for page in site.pages})
        page = SitePage(id=generate_id("page-"), name=name, slug=slug)
        self.store.apply(PageAdded(session_id=session_id, page=page))

        home = site.home
        home_html = home.html if home is not None and home.status is JobStatus.COMPLETE else None
        page_list = [(existing.name, existing.slug) for existing in site.pages] + [(page.name, page.slug)]
        await self._run_page(
            session_id,
            page,
            build_site_page_prompt(
                session.prompt,
                site.style_name,
                page_name=page.name,
                page_slug=page.slug,
                is_home=False,
                pages=page_list,
                brand_kit=self.config.brand_kit,
                home_html=home_html,
            ),
        )
        added = self.store.session(session_id).site.page(page.id)
        assert added is not None
        return added

    def upgrade_to_site(self, session_id: str, artifact_id: str) -> Site:
        return upgrade_to_site(self.store, session_id, artifact_id)

    async def _run_page(self, session_id: str, page: SitePage, prompt: str) -> JobOutcome:
        job = Job(
            id=page.id,
            request=CompletionRequest(text=prompt),
            client=self.client,
            label=f"page {page.name}",
        )
        on_progress, on_settle = store_callbacks(self.store, session_id)
        outcomes = await self.scheduler.run([job], on_progress, on_settle)
        return outcomes[0]
