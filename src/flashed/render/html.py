"""
Writing generated documents to disk and preparing them for publishing.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List, Optional

from ..state.models import JobStatus, SEOSettings, Session
from ..util import ensure_directory, escape_html, slugify, write_text_file

logger = logging.getLogger(__name__)

_HEAD_CLOSE = re.compile(r"</head\s*>", re.IGNORECASE)
_HTML_OPEN = re.compile(r"<html[^>]*>", re.IGNORECASE)
_TITLE = re.compile(r"<title[^>]*>[\s\S]*?</title\s*>\s*", re.IGNORECASE)
_ICON_LINK = re.compile(r"<link\s+[^>]*rel=[\"'](?:shortcut )?icon[\"'][^>]*>\s*", re.IGNORECASE)
_REPLACED_META = re.compile(
    r"<meta\s+[^>]*(?:name=[\"'](?:description|twitter:[^\"']*)[\"']|property=[\"']og:[^\"']*[\"'])[^>]*>\s*",
    re.IGNORECASE,
)


def apply_seo(html_doc: str, seo: SEOSettings) -> str:
    """
    Replace the title, description and Open Graph tags of a document with `seo`.

    A <head> is created when the document has none.
    """
    tags = [f"<title>{escape_html(seo.title)}</title>"]
    tags.append(f'<meta name="description" content="{escape_html(seo.description)}">')
    tags.append(f'<meta property="og:title" content="{escape_html(seo.title)}">')
    tags.append(f'<meta property="og:description" content="{escape_html(seo.description)}">')
    tags.append('<meta property="og:type" content="website">')
    if seo.og_image:
        tags.append(f'<meta property="og:image" content="{escape_html(seo.og_image)}">')
    if seo.favicon:
        tags.append(f'<link rel="icon" href="{escape_html(seo.favicon)}">')
    block = "\n".join(tags) + "\n"

    cleaned = html_doc
    for pattern in (_TITLE, _REPLACED_META, _ICON_LINK):
        cleaned = pattern.sub("", cleaned)
    if _HEAD_CLOSE.search(cleaned):
        return _HEAD_CLOSE.sub(lambda m: block + m.group(0), cleaned, count=1)
    head = f"<head>\n{block}</head>\n"
    opening = _HTML_OPEN.search(cleaned)
    if opening:
        return cleaned[: opening.end()] + "\n" + head + cleaned[opening.end():]
    return f"<!DOCTYPE html>\n<html>\n{head}<body>\n{cleaned}\n</body>\n</html>\n"


def session_directory(output_dir: Path | str, session: Session) -> Path:
    return Path(output_dir) / session.id


def write_session(session: Session, output_dir: Path | str) -> List[Path]:
    """
    Write every complete artifact and site page of a session under `<output_dir>/<session-id>/`.

    Artifacts become `<n>-<style>.html`; site pages go to `site/<slug>.html`.
    Documents that are not complete are skipped.
    """
    root = ensure_directory(session_directory(output_dir, session))
    written: List[Path] = []
    for index, artifact in enumerate(session.artifacts, start=1):
        if artifact.status is not JobStatus.COMPLETE:
            logger.debug("Skipping %s artifact %s", artifact.status.value, artifact.id)
            continue
        doc = apply_seo(artifact.html, artifact.seo) if artifact.seo else artifact.html
        written.append(write_text_file(root / f"{index}-{slugify(artifact.style_name)}.html", doc))

    if session.site is not None:
        site_root = root / "site"
        for page in session.site.pages:
            if page.status is not JobStatus.COMPLETE:
                logger.debug("Skipping %s page %s", page.status.value, page.name)
                continue
            written.append(write_text_file(site_root / f"{page.slug}.html", page.html))

    logger.info("Wrote %d document(s) for session %s to %s", len(written), session.id, root)
    return written


def write_document(destination: Path | str, html_doc: str, seo: Optional[SEOSettings] = None) -> Path:
    return write_text_file(destination, apply_seo(html_doc, seo) if seo else html_doc)
