"""
Configuration helpers for the flashed engine.
"""

from .models import BrandKit, ConfigError, EngineConfig, VARIANT_OPTIONS, load_config
from .settings import Secrets, get_secrets

__all__ = ["BrandKit", "ConfigError", "EngineConfig", "VARIANT_OPTIONS", "load_config", "Secrets", "get_secrets"]
