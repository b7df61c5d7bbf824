"""
Text-related helpers.
"""

from __future__ import annotations

import hashlib
import html
import re

_WHITESPACE = re.compile(r"\s+")
_PAGE_SLUG_STRIP = re.compile(r"[^a-z0-9-]")
_FILE_SLUG_PATTERN = re.compile(r"[^a-z0-9]+")
_OVERRIDE_PREFIX = re.compile(r"^(ignore|disregard|forget|skip)[\s:]", re.IGNORECASE)

MAX_PROMPT_LENGTH = 2000


def page_slug(name: str) -> str:
    """
    URL slug for a site page: lowercase, spaces to hyphens, everything else dropped.

    Falls back to "home" when nothing survives.
    """
    slug = _WHITESPACE.sub("-", (name or "").strip().lower())
    slug = _PAGE_SLUG_STRIP.sub("", slug)
    return slug or "home"


def slugify(value: str) -> str:
    """
    Generate a filesystem-friendly slug.

    Uses hyphens as separators to reduce collisions.
    """
    raw = (value or "").strip().lower()
    slug = _FILE_SLUG_PATTERN.sub("-", raw).strip("-")
    if slug:
        return slug
    digest = hashlib.sha1(raw.encode("utf-8")).hexdigest()[:8]
    return f"item-{digest}"


def sanitize_prompt(value: str) -> str:
    """
    Remove instruction-override openers and code fences from user input, capped in length.
    """
    cleaned = _OVERRIDE_PREFIX.sub("", value or "")
    cleaned = cleaned.replace("```", "")
    return cleaned[:MAX_PROMPT_LENGTH]


def escape_html(value: str) -> str:
    return html.escape(value or "", quote=True)


def truncate(value: str, limit: int, *, ellipsis: str = "") -> str:
    if len(value) <= limit:
        return value
    return value[:limit] + ellipsis


def format_request_exception(exc: Exception) -> str:
    """
    Compact description of a requests failure: status code and URL when a response exists.
    """
    response = getattr(exc, "response", None)
    if response is None:
        return f"{type(exc).__name__}: {exc}"
    status = getattr(response, "status_code", "?")
    url = getattr(response, "url", "") or ""
    reason = getattr(response, "reason", "") or ""
    detail = f"HTTP {status}"
    if reason:
        detail += f" {reason}"
    if url:
        detail += f" for {url}"
    return detail
