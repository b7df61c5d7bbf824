"""
Shared utility helpers for filesystem, strings, identifiers and time.
"""

from .filesystem import ensure_directory, file_lock, remove_file, write_text_file
from .text import escape_html, format_request_exception, page_slug, sanitize_prompt, slugify, truncate
from .time import generate_id, utc_now

__all__ = [
    "ensure_directory",
    "file_lock",
    "remove_file",
    "write_text_file",
    "escape_html",
    "format_request_exception",
    "page_slug",
    "sanitize_prompt",
    "slugify",
    "truncate",
    "generate_id",
    "utc_now",
]
