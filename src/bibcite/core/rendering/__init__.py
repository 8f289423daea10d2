"""Style and template rendering of citation records."""

from __future__ import annotations

from .engine import CiteprocStyleEngine, StyleEngine
from .renderer import (
    FALLBACK_TEMPLATE,
    UNKNOWN_ENTRY,
    UNKNOWN_KEY,
    CitationRenderer,
    RenderedEntry,
)
from .styles import ResolvedStyle, StyleResolver


__all__ = [
    "FALLBACK_TEMPLATE",
    "UNKNOWN_ENTRY",
    "UNKNOWN_KEY",
    "CitationRenderer",
    "CiteprocStyleEngine",
    "RenderedEntry",
    "ResolvedStyle",
    "StyleEngine",
    "StyleResolver",
]
