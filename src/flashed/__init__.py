"""
Core package for the flashed multi-variant page generation engine.
"""

from importlib import metadata as _metadata

try:
    __version__ = _metadata.version("flashed")
except _metadata.PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"

__all__ = ["__version__"]
