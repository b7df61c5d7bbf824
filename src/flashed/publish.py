"""
Publishing finished artifacts to a hosting backend.
"""

from __future__ import annotations

import logging
import secrets
import string
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Union

import requests

from .render import apply_seo
from .state.events import PublishAttached
from .state.models import JobStatus, PublishInfo, SEOSettings
from .state.store import SessionStore, StateError
from .util import format_request_exception, truncate, utc_now

logger = logging.getLogger(__name__)

PUBLISH_TIMEOUT_SECONDS = 20
SHORT_ID_LENGTH = 8
_SHORT_ID_ALPHABET = string.ascii_letters + string.digits + "_-"


class PublishError(RuntimeError):
    """Raised when the publishing backend cannot be reached or answers badly."""


@dataclass(frozen=True)
class PublishResult:
    url: str
    short_id: str


@dataclass(frozen=True)
class PublishFailure:
    error: str


PublishOutcome = Union[PublishResult, PublishFailure]


class Publisher(Protocol):
    def publish(self, html: str, seo: SEOSettings, *, short_id: Optional[str] = None) -> PublishOutcome:
        ...


def generate_short_id() -> str:
    return "".join(secrets.choice(_SHORT_ID_ALPHABET) for _ in range(SHORT_ID_LENGTH))


class HttpPublisher:
    """
    POSTs documents as JSON to a publishing endpoint.

    The backend answers with `{"url": ..., "shortId": ...}` on success or
    `{"error": ...}` when it refuses the document.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        token: Optional[str] = None,
        timeout: float = PUBLISH_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.endpoint = endpoint
        self.token = token
        self.timeout = timeout
        self._session = session or requests.Session()

    def publish(self, html: str, seo: SEOSettings, *, short_id: Optional[str] = None) -> PublishOutcome:
        short_id = short_id or generate_short_id()
        payload = {
            "shortId": short_id,
            "html": html,
            "seoTitle": seo.title,
            "seoDescription": seo.description,
            "ogImage": seo.og_image,
        }
        try:
            data = self._post(payload)
        except PublishError as exc:
            logger.warning("Publishing %s failed: %s", short_id, exc)
            return PublishFailure(error=str(exc))

        if data.get("error"):
            return PublishFailure(error=str(data["error"]))
        url = data.get("url")
        if not url:
            return PublishFailure(error="Publishing backend returned no URL")
        return PublishResult(url=str(url), short_id=str(data.get("shortId") or short_id))

    def _post(self, payload: dict) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        try:
            response = self._session.post(self.endpoint, json=payload, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise PublishError(format_request_exception(exc)) from exc
        try:
            data = response.json()
        except ValueError as exc:
            raise PublishError("Publishing backend returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise PublishError("Publishing backend returned an unexpected payload")
        return data


def publish_artifact(
    store: SessionStore,
    publisher: Publisher,
    session_id: str,
    artifact_id: str,
    seo: Optional[SEOSettings] = None,
) -> PublishOutcome:
    """
    Publish a complete artifact and record where it went.

    Republishing reuses the short id and bumps the version.

    Raises:
        StateError: If the artifact is unknown or not complete.
    """
    session = store.session(session_id)
    artifact = session.artifact(artifact_id)
    if artifact is None:
        raise StateError(f"Unknown artifact {artifact_id} in session {session_id}")
    if artifact.status is not JobStatus.COMPLETE:
        raise StateError(f"Only complete artifacts can be published ({artifact_id} is {artifact.status.value})")

    seo = seo or artifact.seo or SEOSettings(title=truncate(session.prompt, 60))
    previous = artifact.publish_info
    outcome = publisher.publish(
        apply_seo(artifact.html, seo),
        seo,
        short_id=previous.short_id if previous else None,
    )
    if isinstance(outcome, PublishFailure):
        logger.warning("Publishing artifact %s failed: %s", artifact_id, outcome.error)
        return outcome

    info = PublishInfo(
        url=outcome.url,
        short_id=outcome.short_id,
        published_at=utc_now(),
        version=previous.version + 1 if previous else 1,
    )
    store.apply(PublishAttached(session_id=session_id, target_id=artifact_id, publish_info=info, seo=seo))
    logger.info("Published artifact %s to %s (version %d)", artifact_id, info.url, info.version)
    return outcome
