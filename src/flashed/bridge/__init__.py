from .messages import (
    BridgeMessage,
    ImageClick,
    MessageError,
    MessageRouter,
    SiteNavigate,
    UpdateImage,
    build_update_image,
    parse_message,
)

__all__ = [
    "BridgeMessage",
    "ImageClick",
    "MessageError",
    "MessageRouter",
    "SiteNavigate",
    "UpdateImage",
    "build_update_image",
    "parse_message",
]
