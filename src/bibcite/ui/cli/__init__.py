"""Public CLI exports for bibcite."""

from __future__ import annotations

from .app import app, main
from .state import CLIState, debug_enabled, emit_error, emit_warning, get_cli_state


__all__ = [
    "CLIState",
    "app",
    "debug_enabled",
    "emit_error",
    "emit_warning",
    "get_cli_state",
    "main",
]
