"""
Two-phase generation: decide N styles, then generate N documents in bounded batches.

Also hosts the follow-up operations on a finished artifact: refinement,
alternative variations and applying one of those variations.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..config import BrandKit, EngineConfig
from ..llm.client import CompletionClient, CompletionRequest
from ..llm.prompts import (
    VARIATION_DIRECTIONS,
    build_refine_prompt,
    build_variant_prompt,
    build_variation_prompt,
)
from ..state.events import (
    ContentProgress,
    ContentRestored,
    JobRestarted,
    JobSettled,
    SessionCreated,
    StylesAssigned,
)
from ..state.models import Artifact, JobStatus, Session
from ..state.store import SessionStore, StateError
from ..util import generate_id, sanitize_prompt
from .job import Job, ProgressCallback, SettleCallback
from .scheduler import BatchScheduler, RetryPolicy
from .styles import StyleDecision, StylesOk, decide_styles

logger = logging.getLogger(__name__)

REFINE_TEMPERATURE = 0.7
VARIATION_TEMPERATURE = 1.1


@dataclass(frozen=True)
class GenerationRequest:
    """
    What the user asked for.

    Attributes:
        prompt: Free-text description of the page.
        variant_count: Number of variants; the configured default applies when unset.
        image_data_url: Optional reference image as a data URL.
        url: Optional reference URL.
        clone: Replicate the reference instead of designing freely (needs url or image).
        brand_kit: Optional colours and font every variant must use.
    """
    prompt: str
    variant_count: Optional[int] = None
    image_data_url: Optional[str] = None
    url: Optional[str] = None
    clone: bool = False
    brand_kit: Optional[BrandKit] = None


@dataclass(frozen=True)
class Variation:
    direction: str
    html: str


def build_scheduler(config: EngineConfig) -> BatchScheduler:
    """Scheduler configured from the engine settings."""
    return BatchScheduler(
        config.batch_width,
        retry=RetryPolicy(max_attempts=config.retry_attempts, base_delay=config.retry_base_delay),
        batch_timeout=config.batch_timeout_seconds,
    )


def store_callbacks(store: SessionStore, session_id: str) -> Tuple[ProgressCallback, SettleCallback]:
    """Job callbacks that translate progress and settlement into store events."""

    def on_progress(target_id: str, buffer: str) -> None:
        store.apply(ContentProgress(session_id=session_id, target_id=target_id, html=buffer))

    def on_settle(target_id: str, status: JobStatus, html: str) -> None:
        store.apply(JobSettled(session_id=session_id, target_id=target_id, status=status, html=html))

    return on_progress, on_settle


def _clean_prompt(prompt: str) -> str:
    cleaned = sanitize_prompt(prompt).strip()
    if not cleaned:
        raise ValueError("Prompt must not be empty")
    return cleaned


class GenerationPipeline:
    """
    Runs the two-phase flow against one completion client and writes results into the store.
    """

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

    async def generate_variants(self, request: GenerationRequest) -> Session:
        """
        Create a session with N pending artifacts, decide their styles, then generate them.

        Returns the session as it stands after every job has settled.
        """
        prompt = _clean_prompt(request.prompt)
        count = request.variant_count or self.config.variant_count
        if count < 1:
            raise ValueError("variant_count must be >= 1")
        brand_kit = request.brand_kit or self.config.brand_kit

        session = Session(
            id=generate_id("sess-"),
            prompt=prompt,
            mode="single",
            artifacts=tuple(Artifact(id=generate_id("art-")) for _ in range(count)),
            variant_count=count,
        )
        self.store.apply(SessionCreated(session=session))
        logger.info("Session %s: generating %d variants for %r", session.id, count, prompt)

        decision = await self.decide_styles(prompt, count, url=request.url, image_data_url=request.image_data_url)
        self.store.apply(StylesAssigned(session_id=session.id, styles=decision.styles))

        jobs = [
            Job(
                id=artifact.id,
                request=CompletionRequest(
                    text=build_variant_prompt(
                        prompt,
                        style,
                        url=request.url,
                        has_image=bool(request.image_data_url),
                        brand_kit=brand_kit,
                        clone=request.clone,
                    ),
                    image_data_url=request.image_data_url,
                ),
                client=self.client,
                label=f"{style} ({artifact.id})",
            )
            for artifact, style in zip(session.artifacts, decision.styles)
        ]
        on_progress, on_settle = store_callbacks(self.store, session.id)
        await self.scheduler.run(jobs, on_progress, on_settle)
        return self.store.session(session.id)

    async def decide_styles(
        self,
        prompt: str,
        count: int,
        *,
        url: Optional[str] = None,
        image_data_url: Optional[str] = None,
    ) -> StyleDecision:
        decision = await decide_styles(
            self.scheduler.wrap_client(self.client),
            prompt,
            count,
            url=url,
            image_data_url=image_data_url,
        )
        if not isinstance(decision, StylesOk):
            logger.info("Using fallback styles: %s", ", ".join(decision.styles))
        return decision

    async def refine_artifact(self, session_id: str, artifact_id: str, instruction: str) -> Artifact:
        """
        Stream a refined version of a complete artifact.

        If the refinement fails, the artifact goes back to its previous content
        with status complete.
        """
        artifact = self._complete_artifact(session_id, artifact_id)
        instruction = _clean_prompt(instruction)
        previous_html = artifact.html

        self.store.apply(JobRestarted(session_id=session_id, target_id=artifact_id))
        on_progress, settle_in_store = store_callbacks(self.store, session_id)

        def on_settle(target_id: str, status: JobStatus, html: str) -> None:
            if status is JobStatus.COMPLETE:
                settle_in_store(target_id, status, html)
                return
            logger.warning("Refinement of %s failed; keeping the previous version", target_id)
            self.store.apply(ContentRestored(session_id=session_id, target_id=target_id, html=previous_html))

        job = Job(
            id=artifact_id,
            request=CompletionRequest(
                text=build_refine_prompt(previous_html, instruction),
                temperature=REFINE_TEMPERATURE,
            ),
            client=self.client,
            label=f"refine {artifact_id}",
        )
        await self.scheduler.run([job], on_progress, on_settle)
        refined = self.store.session(session_id).artifact(artifact_id)
        assert refined is not None
        return refined

    async def generate_variations(self, session_id: str, artifact_id: str) -> List[Variation]:
        """
        Three alternative takes on a complete artifact, generated concurrently.

        Variations are returned, not stored; failed ones are left out.
        """
        artifact = self._complete_artifact(session_id, artifact_id)
        session = self.store.session(session_id)
        jobs = [
            Job(
                id=generate_id("var-"),
                request=CompletionRequest(
                    text=build_variation_prompt(session.prompt, artifact.html, direction),
                    temperature=VARIATION_TEMPERATURE,
                ),
                client=self.client,
                streaming=False,
                label=f"variation {direction.name}",
            )
            for direction in VARIATION_DIRECTIONS
        ]
        scheduler = BatchScheduler(len(jobs), retry=self.scheduler.retry, batch_timeout=self.scheduler.batch_timeout)
        outcomes = await scheduler.run(jobs, _ignore_progress, _ignore_settle)

        variations = [
            Variation(direction=direction.name, html=outcome.html)
            for direction, outcome in zip(VARIATION_DIRECTIONS, outcomes)
            if outcome.ok
        ]
        if not variations:
            logger.warning("All variations of %s failed", artifact_id)
        return variations

    def apply_variation(self, session_id: str, artifact_id: str, html: str) -> Artifact:
        """Replace a settled artifact's content with a chosen variation."""
        session = self.store.session(session_id)
        artifact = session.artifact(artifact_id)
        if artifact is None:
            raise StateError(f"Unknown artifact {artifact_id} in session {session_id}")
        if artifact.status.is_active:
            raise StateError(f"Artifact {artifact_id} is still generating")
        self.store.apply(ContentRestored(session_id=session_id, target_id=artifact_id, html=html))
        updated = self.store.session(session_id).artifact(artifact_id)
        assert updated is not None
        return updated

    def _complete_artifact(self, session_id: str, artifact_id: str) -> Artifact:
        artifact = self.store.session(session_id).artifact(artifact_id)
        if artifact is None:
            raise StateError(f"Unknown artifact {artifact_id} in session {session_id}")
        if artifact.status is not JobStatus.COMPLETE:
            raise StateError(f"Artifact {artifact_id} is {artifact.status.value}, expected complete")
        return artifact


def _ignore_progress(target_id: str, buffer: str) -> None:
    return None


def _ignore_settle(target_id: str, status: JobStatus, html: str) -> None:
    return None
