"""Sort Steam screenshots into per-game folders using the Steam app list."""

from __future__ import annotations

__version__ = "1.0.0"

__all__ = ["__version__"]
