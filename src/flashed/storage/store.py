"""
Key-value persistence backends holding JSON documents.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from ..util import ensure_directory, remove_file, write_text_file

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class StorageError(RuntimeError):
    """Raised when a document cannot be read or written."""


class KeyValueStore(Protocol):
    def read(self, key: str) -> Optional[Any]:
        ...

    def write(self, key: str, value: Any) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class JsonFileStore:
    """
    One JSON file per key under `root` (`<root>/<key>.json`).

    Writes go through a lock file and an atomic rename, so a reader never sees
    a half-written document.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def path_for(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise StorageError(f"Invalid storage key {key!r}")
        return self.root / f"{key}.json"

    def read(self, key: str) -> Optional[Any]:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Failed to read {path}: {exc}") from exc
        if not text.strip():
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise StorageError(f"Corrupt document {path}: {exc}") from exc

    def write(self, key: str, value: Any) -> None:
        path = self.path_for(key)
        try:
            payload = json.dumps(value, indent=2, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise StorageError(f"Value for {key!r} is not JSON serializable: {exc}") from exc
        try:
            ensure_directory(self.root)
            write_text_file(path, payload)
        except OSError as exc:
            raise StorageError(f"Failed to write {path}: {exc}") from exc
        logger.debug("Wrote %s (%d bytes)", path, len(payload))

    def delete(self, key: str) -> None:
        path = self.path_for(key)
        try:
            remove_file(path)
        except OSError as exc:
            raise StorageError(f"Failed to delete {path}: {exc}") from exc


class MemoryStore:
    """In-process store; values are copied through JSON like the file store."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def read(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    def write(self, key: str, value: Any) -> None:
        try:
            self._data[key] = json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise StorageError(f"Value for {key!r} is not JSON serializable: {exc}") from exc

    def delete(self, key: str) -> None:
        self._data.pop(key, None)
