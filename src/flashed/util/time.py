"""
Time and identifier helpers.
"""

from __future__ import annotations

import secrets
import string
from datetime import datetime, timezone

_ID_ALPHABET = string.digits + string.ascii_lowercase


def utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(timezone.utc)


def generate_id(prefix: str = "") -> str:
    """
    Short, sortable-ish identifier: base36 millisecond clock plus random suffix.
    """
    millis = int(utc_now().timestamp() * 1000)
    clock = _to_base36(millis)
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{prefix}{clock}{suffix}"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_ID_ALPHABET[rem])
    return "".join(reversed(digits))
