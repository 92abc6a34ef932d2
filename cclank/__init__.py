"""cclank: a manifest-driven C++ build and project manager."""
from __future__ import annotations

from .cli import main

__all__ = ["main"]
