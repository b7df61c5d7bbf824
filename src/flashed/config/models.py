"""
Pydantic models for validating and hashing engine configuration files.
"""

from __future__ import annotations

import hashlib
import json
import logging
import tomllib
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

logger = logging.getLogger(__name__)

VARIANT_OPTIONS = (3, 5, 10)
MAX_VARIANTS = 10


class ConfigError(RuntimeError):
    """Raised when configuration files cannot be loaded or validated."""


class BrandKit(BaseModel):
    """
    Colours and typography a generated page must use.

    Attributes:
        name: Display name of the kit.
        primary_color: Primary colour (any CSS colour string).
        secondary_color: Secondary colour.
        accent_color: Accent colour.
        font_family: Google Font family name.
        logo_url: Optional logo to embed.
    """
    id: Optional[str] = None
    name: str = "Brand kit"
    primary_color: str
    secondary_color: str
    accent_color: str
    font_family: str
    logo_url: Optional[str] = None

    model_config = {"extra": "forbid", "frozen": True}


class EngineConfig(BaseModel):
    """
    Top-level configuration for the generation engine.

    Attributes:
        llm: Model identifier (e.g. "or:google/gemini-2.5-flash", "gpt-4o-mini").
        variant_count: Number of variants generated per request.
        batch_width: Maximum jobs in flight at once.
        fetch_timeout_seconds: Network timeout applied to every completion call.
        batch_timeout_seconds: Optional wall-clock ceiling for one batch; disabled when unset.
        retry_attempts: Attempts per completion call (1 disables retries).
        retry_base_delay: Initial backoff delay in seconds, doubled per attempt.
        max_sessions: Sessions kept in persistent storage.
        max_versions: Version entries kept in persistent storage.
        max_undo_history: Depth of the in-memory undo stack.
        state_dir: Directory backing the persistent key-value store.
        output_dir: Where generated HTML documents are written.
        temperature: Sampling temperature for generation calls.
        max_tokens: Maximum output tokens per call.
        publish_url: Endpoint of the publishing backend.
        draft_autosave_seconds: Interval between draft autosave ticks.
        brand_kit: Optional default brand kit.
    """
    llm: Optional[str] = None
    variant_count: int = 3
    batch_width: int = 3
    fetch_timeout_seconds: float = 30.0
    batch_timeout_seconds: Optional[float] = None
    retry_attempts: int = 3
    retry_base_delay: float = 0.5
    max_sessions: int = 10
    max_versions: int = 100
    max_undo_history: int = 50
    state_dir: Path = Path(".flashed")
    output_dir: Path = Path("flashed_output")
    temperature: float = 0.7
    max_tokens: int = 8192
    publish_url: Optional[str] = None
    draft_autosave_seconds: float = 30.0
    brand_kit: Optional[BrandKit] = None

    model_config = {
        "extra": "forbid",
        "arbitrary_types_allowed": True,
        "populate_by_name": True,
    }

    @field_validator("variant_count")
    @classmethod
    def _check_variant_count(cls, value: int) -> int:
        if value < 1 or value > MAX_VARIANTS:
            raise ValueError(f"variant_count must be between 1 and {MAX_VARIANTS}")
        return value

    @field_validator("batch_width", "retry_attempts", "max_sessions", "max_versions", "max_undo_history")
    @classmethod
    def _check_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @field_validator("fetch_timeout_seconds", "draft_autosave_seconds")
    @classmethod
    def _check_positive_seconds(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be greater than zero")
        return value

    @model_validator(mode="after")
    def _warn_on_unusual_values(self) -> "EngineConfig":
        if self.variant_count not in VARIANT_OPTIONS:
            logger.warning(
                "variant_count=%d is outside the usual options %s.",
                self.variant_count,
                ", ".join(str(v) for v in VARIANT_OPTIONS),
            )
        if self.batch_timeout_seconds is not None and self.batch_timeout_seconds <= 0:
            raise ValueError("batch_timeout_seconds must be greater than zero when set")
        return self

    @property
    def hash(self) -> str:
        """
        Deterministic hash of the normalized config, used to detect changes.
        """
        payload = self.model_dump(mode="json", round_trip=True)
        blob = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
        return hashlib.sha256(blob).hexdigest()


def load_config(path: Path | str) -> EngineConfig:
    """
    Load and validate a TOML config file into an EngineConfig instance.

    Args:
        path: Path to the TOML configuration file.

    Returns:
        A validated EngineConfig object.

    Raises:
        ConfigError: If the file is missing, unreadable, or invalid.
    """
    config_path = Path(path).expanduser().resolve()
    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with config_path.open("rb") as handle:
            raw_data: Dict[str, Any] = tomllib.load(handle)
    except OSError as exc:
        raise ConfigError(f"Unable to read configuration file: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in configuration file: {exc}") from exc

    if "brand_kits" in raw_data:
        raise ConfigError("Use a single [brand_kit] table; brand kit catalogues are not supported.")

    try:
        return EngineConfig.model_validate(raw_data)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc
