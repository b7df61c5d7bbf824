"""
Phase 1: decide style labels before any document is generated.

The model is asked for a JSON array. Its answer is decoded in two steps: the
whole response as JSON, then the widest `[...]` span found in the text. If
neither gives N strings, a fixed fallback list is used instead.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from itertools import cycle, islice
from typing import Optional, Tuple, Union

from ..llm.client import CompletionClient, CompletionError, CompletionRequest
from ..llm.prompts import build_site_style_prompt, build_style_prompt
from ..util import truncate

logger = logging.getLogger(__name__)

STYLE_FALLBACKS: Tuple[str, ...] = (
    "Modern Clean",
    "Bold & Vibrant",
    "Professional Minimal",
    "Elegant Serif",
    "Playful Colorful",
    "Dark Mode Luxe",
    "Retro Vintage",
    "Soft Pastel",
    "High-Contrast Corporate",
    "Warm Natural",
)
DEFAULT_SITE_STYLE = "Modern Professional"

# First '[' through the last ']' so nested brackets inside labels survive.
_ARRAY_SPAN = re.compile(r"\[[\s\S]*\]")


@dataclass(frozen=True)
class StylesOk:
    styles: Tuple[str, ...]


@dataclass(frozen=True)
class StylesFallback:
    """The model answered, but not with N usable labels."""
    styles: Tuple[str, ...]
    reason: str


@dataclass(frozen=True)
class StylesError:
    """The style call itself failed; the fallback list is used."""
    styles: Tuple[str, ...]
    message: str


StyleDecision = Union[StylesOk, StylesFallback, StylesError]


def fallback_styles(count: int) -> Tuple[str, ...]:
    """Exactly `count` labels from STYLE_FALLBACKS, cycling when count exceeds the list."""
    if count < 1:
        return ()
    return tuple(islice(cycle(STYLE_FALLBACKS), count))


def _decode_array(text: str) -> Optional[list]:
    try:
        value = json.loads(text)
    except json.JSONDecodeError:
        value = None
    if isinstance(value, list):
        return value

    match = _ARRAY_SPAN.search(text)
    if match is None:
        return None
    try:
        value = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, list) else None


def parse_style_list(text: str, count: int) -> Tuple[Optional[Tuple[str, ...]], str]:
    """
    Decode `count` style labels from a model response.

    Returns (styles, "") on success or (None, reason) when the response is
    unusable. Extra labels are dropped.
    """
    items = _decode_array((text or "").strip())
    if items is None:
        return None, "response contained no JSON array"
    if not all(isinstance(item, str) for item in items):
        return None, "array contained non-string entries"
    labels = [item.strip() for item in items if item.strip()]
    if len(labels) < count:
        return None, f"expected {count} styles, got {len(labels)}"
    return tuple(labels[:count]), ""


async def decide_styles(
    client: CompletionClient,
    prompt: str,
    count: int,
    *,
    url: Optional[str] = None,
    image_data_url: Optional[str] = None,
) -> StyleDecision:
    """
    Ask for `count` distinct style labels. Never raises for model or transport failures.
    """
    request = CompletionRequest(
        text=build_style_prompt(prompt, count, url=url, has_image=bool(image_data_url)),
        image_data_url=image_data_url,
    )
    try:
        response = await client.complete(request)
    except CompletionError as exc:
        logger.warning("Style decision failed (%s); using fallback styles", exc.message)
        return StylesError(styles=fallback_styles(count), message=exc.message)

    styles, reason = parse_style_list(response, count)
    if styles is None:
        logger.warning(
            "Could not use style response (%s); using fallback styles. Response: %s",
            reason,
            truncate(response or "", 200, ellipsis="..."),
        )
        return StylesFallback(styles=fallback_styles(count), reason=reason)
    logger.info("Styles decided: %s", ", ".join(styles))
    return StylesOk(styles=styles)


def clean_site_style(text: str) -> str:
    """Strip surrounding quotes and whitespace from a single-style answer."""
    cleaned = (text or "").strip().strip("\"'").strip()
    return cleaned or DEFAULT_SITE_STYLE


async def decide_site_style(client: CompletionClient, prompt: str, *, url: Optional[str] = None) -> str:
    """One cohesive style for every page of a site, falling back to DEFAULT_SITE_STYLE."""
    try:
        response = await client.complete(CompletionRequest(text=build_site_style_prompt(prompt, url=url)))
    except CompletionError as exc:
        logger.warning("Site style decision failed (%s); using %r", exc.message, DEFAULT_SITE_STYLE)
        return DEFAULT_SITE_STYLE
    style = clean_site_style(response)
    logger.info("Site style decided: %s", style)
    return style
