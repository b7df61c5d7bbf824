"""
Chunk accumulation and final HTML clean-up for generated documents.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional

from ..util import escape_html

logger = logging.getLogger(__name__)

MIN_HTML_LENGTH = 100
_HTML_MARKERS = ("<html", "<!doctype", "<body")
# Greedy: from the first <html to the last </html>.
_HTML_SPAN = re.compile(r"<html[\s\S]*</html>", re.IGNORECASE)
_LEADING_FENCE = re.compile(r"^```[\w+-]*")
_TRAILING_FENCE = re.compile(r"```$")


class StreamAccumulator:
    """
    Append-only text buffer for one job.

    `append` concatenates chunks in arrival order and hands the whole buffer to
    the listener after every chunk, so consumers never have to stitch deltas.
    """

    def __init__(self, listener: Optional[Callable[[str], None]] = None) -> None:
        self._buffer = ""
        self._listener = listener
        self.chunk_count = 0

    @property
    def buffer(self) -> str:
        return self._buffer

    def append(self, chunk: str) -> str:
        if not chunk:
            return self._buffer
        self._buffer += chunk
        self.chunk_count += 1
        if self._listener is not None:
            self._listener(self._buffer)
        return self._buffer


@dataclass(frozen=True)
class FinalizationResult:
    """
    Outcome of cleaning a finished buffer.

    Attributes:
        ok: Whether `html` is a usable document.
        html: Cleaned document (empty when `ok` is False).
        raw: The untouched buffer, kept for diagnostics.
        rescued: True when the document had to be cut out of surrounding text.
    """
    ok: bool
    html: str
    raw: str
    rescued: bool = False


def strip_code_fences(text: str) -> str:
    """Trim, then drop leading ```lang and trailing ``` fences until none are left."""
    cleaned = (text or "").strip()
    while True:
        stripped = _LEADING_FENCE.sub("", cleaned, count=1)
        stripped = _TRAILING_FENCE.sub("", stripped, count=1).strip()
        if stripped == cleaned:
            return cleaned
        cleaned = stripped


def is_valid_html(text: str) -> bool:
    if not text or len(text) < MIN_HTML_LENGTH:
        return False
    lowered = text.lower()
    return any(marker in lowered for marker in _HTML_MARKERS)


def rescue_html(text: str) -> Optional[str]:
    """Return the widest <html>...</html> span inside `text`, if any."""
    match = _HTML_SPAN.search(text or "")
    return match.group(0) if match else None


def finalize_html(raw: str) -> FinalizationResult:
    """
    Clean a finished buffer into a document.

    Fences are stripped first; if the result does not look like HTML, the
    widest <html> span is tried once. Applying this to its own output returns
    the same html.
    """
    cleaned = strip_code_fences(raw)
    if is_valid_html(cleaned):
        return FinalizationResult(ok=True, html=cleaned, raw=raw)

    rescued = rescue_html(cleaned)
    if rescued is not None and is_valid_html(rescued):
        logger.debug("Recovered HTML document from surrounding text (%d -> %d chars)", len(cleaned), len(rescued))
        return FinalizationResult(ok=True, html=rescued, raw=raw, rescued=True)

    return FinalizationResult(ok=False, html="", raw=raw)


def render_error_html(message: str) -> str:
    """Diagnostic shown in place of a document when a job fails."""
    return f'<div style="color: #ff6b6b; padding: 20px;">Error: {escape_html(message)}</div>'
