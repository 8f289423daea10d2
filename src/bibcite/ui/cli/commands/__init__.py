"""CLI command implementations exposed via `bibcite.ui.cli`."""

from __future__ import annotations

from .catalog import clear_cache, styles, templates
from .library import show, sync
from .render import render


__all__ = ["clear_cache", "render", "show", "styles", "sync", "templates"]
