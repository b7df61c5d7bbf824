"""
Single-slot draft storage with periodic autosave.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from pydantic import ValidationError

from ..state.events import SessionCreated, StoreEvent
from ..state.models import Draft
from ..state.store import SessionStore, StoreState
from ..util import generate_id
from .persistence import DRAFT_KEY
from .store import KeyValueStore, StorageError

logger = logging.getLogger(__name__)

DraftFactory = Callable[[], Optional[Draft]]


class DraftKeeper:
    """
    Keeps at most one unsubmitted draft in the key-value store.

    A stored draft without an id or prompt is treated as absent.
    """

    def __init__(self, kv: KeyValueStore, *, autosave_interval: float = 30.0) -> None:
        self.kv = kv
        self.autosave_interval = autosave_interval

    def save(
        self,
        prompt: str,
        *,
        image_data: Optional[str] = None,
        brand_kit_id: Optional[str] = None,
        site_mode: bool = False,
        page_structure: Optional[str] = None,
    ) -> Optional[Draft]:
        """Store a new draft, replacing any previous one. Empty prompts are not saved."""
        if not (prompt or "").strip() and not image_data:
            return None
        draft = Draft(
            id=generate_id("draft_"),
            prompt=prompt,
            image_data=image_data,
            brand_kit_id=brand_kit_id,
            site_mode=site_mode,
            page_structure=page_structure,
        )
        return self.store_draft(draft)

    def store_draft(self, draft: Draft) -> Optional[Draft]:
        try:
            self.kv.write(DRAFT_KEY, draft.model_dump(mode="json"))
        except StorageError as exc:
            logger.warning("Failed to save draft: %s", exc)
            return None
        logger.debug("Draft %s saved", draft.id)
        return draft

    def load(self) -> Optional[Draft]:
        try:
            payload = self.kv.read(DRAFT_KEY)
        except StorageError as exc:
            logger.warning("Ignoring stored draft: %s", exc)
            return None
        if not isinstance(payload, dict) or not payload.get("id") or not payload.get("prompt"):
            return None
        try:
            return Draft.model_validate(payload)
        except ValidationError as exc:
            logger.warning("Ignoring invalid stored draft: %s", exc.errors()[0].get("msg", exc))
            return None

    def clear(self) -> None:
        try:
            self.kv.delete(DRAFT_KEY)
        except StorageError as exc:
            logger.warning("Failed to clear draft: %s", exc)

    @property
    def has_draft(self) -> bool:
        return self.load() is not None

    def attach(self, store: SessionStore) -> Callable[[], None]:
        """Clear the draft as soon as a session starts generating."""

        def _on_event(event: StoreEvent, previous: StoreState, current: StoreState) -> None:
            if isinstance(event, SessionCreated):
                self.clear()

        return store.subscribe(_on_event)

    async def autosave(self, draft_factory: DraftFactory, interval: Optional[float] = None) -> None:
        """
        Save whatever `draft_factory` returns every `interval` seconds (default
        `autosave_interval`) until cancelled.

        Ticks where the factory returns None or the draft is unchanged are skipped.
        """
        delay = self.autosave_interval if interval is None else interval
        last_saved: Optional[tuple] = None
        while True:
            await asyncio.sleep(delay)
            draft = draft_factory()
            if draft is None:
                continue
            fingerprint = (draft.prompt, draft.image_data, draft.brand_kit_id, draft.site_mode, draft.page_structure)
            if fingerprint == last_saved:
                continue
            if self.store_draft(draft) is not None:
                last_saved = fingerprint
