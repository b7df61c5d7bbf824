"""
Messages exchanged with the sandboxed rendering surface.

Inbound payloads are validated into a closed set of message models and routed
through a dispatch table keyed by message type.
"""

from __future__ import annotations

import json
import logging
from typing import Annotated, Any, Callable, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from ..state.store import SessionStore

logger = logging.getLogger(__name__)


class MessageError(ValueError):
    """Raised when a payload is not a valid rendering-surface message."""


class _Message(BaseModel):
    model_config = {"frozen": True, "populate_by_name": True, "extra": "ignore"}

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class UpdateImage(_Message):
    """Outbound: swap the source of one image inside a rendered document."""
    type: Literal["UPDATE_IMAGE"] = "UPDATE_IMAGE"
    img_id: str = Field(alias="imgId", min_length=1)
    src: str = Field(min_length=1)


class ImageClick(_Message):
    type: Literal["IMAGE_CLICK"] = "IMAGE_CLICK"
    artifact_id: str = Field(alias="artifactId", min_length=1)
    img_id: str = Field(alias="imgId", min_length=1)


class SiteNavigate(_Message):
    type: Literal["SITE_NAVIGATE"] = "SITE_NAVIGATE"
    page_id: str = Field(alias="pageId", min_length=1)
    artifact_id: Optional[str] = Field(default=None, alias="artifactId")


BridgeMessage = Annotated[Union[UpdateImage, ImageClick, SiteNavigate], Field(discriminator="type")]
_ADAPTER: TypeAdapter = TypeAdapter(BridgeMessage)

Handler = Callable[[Any], None]


def parse_message(payload: Union[str, bytes, Dict[str, Any]]) -> Union[UpdateImage, ImageClick, SiteNavigate]:
    """Validate a raw payload (JSON text or decoded dict) into a message model."""
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise MessageError(f"Message is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise MessageError(f"Message must be an object, got {type(payload).__name__}")
    try:
        return _ADAPTER.validate_python(payload)
    except ValidationError as exc:
        raise MessageError(f"Invalid message: {exc.errors()[0].get('msg', exc)}") from exc


def build_update_image(img_id: str, src: str) -> Dict[str, Any]:
    """Payload telling the surface to replace one image."""
    return UpdateImage(img_id=img_id, src=src).to_payload()


class MessageRouter:
    """
    Routes inbound messages to one handler per message type.

    Messages that reference artifacts or pages the store does not know are
    dropped, as are messages of a type nobody registered for.
    """

    def __init__(self, store: SessionStore) -> None:
        self.store = store
        self._handlers: Dict[str, Handler] = {}

    def on(self, message_type: str, handler: Handler) -> None:
        self._handlers[message_type] = handler

    def dispatch(self, payload: Union[str, bytes, Dict[str, Any]]) -> bool:
        """
        Parse and route one payload. Returns True when a handler ran.

        Raises:
            MessageError: If the payload is not a valid message.
        """
        message = parse_message(payload)
        handler = self._handlers.get(message.type)
        if handler is None:
            logger.debug("No handler for %s", message.type)
            return False
        if not self._targets_known(message):
            logger.warning("Dropping %s for unknown target", message.type)
            return False
        handler(message)
        return True

    def _targets_known(self, message: Any) -> bool:
        if isinstance(message, ImageClick):
            return self._knows_artifact(message.artifact_id)
        if isinstance(message, SiteNavigate):
            return self._knows_page(message.page_id)
        return True

    def _knows_artifact(self, target_id: str) -> bool:
        for session in self.store.sessions:
            if session.artifact(target_id) is not None:
                return True
            if session.site is not None and session.site.page(target_id) is not None:
                return True
        return False

    def _knows_page(self, page_id: str) -> bool:
        return any(
            session.site is not None and session.site.page(page_id) is not None
            for session in self.store.sessions
        )
