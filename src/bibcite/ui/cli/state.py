"""Shared CLI state management utilities."""

from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass, field
import logging
from pathlib import Path
import sys
from typing import TYPE_CHECKING

import click
from rich.logging import RichHandler
import typer

from bibcite.core.config import load_settings
from bibcite.core.exceptions import SettingsError
from bibcite.core.services import BibciteServices
from bibcite.core.user_dir import resolve_user_dir


if TYPE_CHECKING:
    from rich.console import Console

__all__ = [
    "CLIState",
    "configure_logging",
    "debug_enabled",
    "emit_error",
    "emit_warning",
    "get_cli_state",
    "render_message",
    "set_cli_state",
]

_LOG_LEVELS = {0: logging.WARNING, 1: logging.INFO}


@dataclass(slots=True)
class CLIState:
    """Shared state controlling CLI diagnostics and the pipeline services."""

    verbosity: int = 0
    show_tracebacks: bool = False
    settings_path: Path | None = None
    cache_dir: Path | None = None
    services: BibciteServices | None = None
    _console: Console | None = field(default=None, init=False, repr=False)
    _err_console: Console | None = field(default=None, init=False, repr=False)

    @property
    def console(self) -> Console:
        """Return a lazily instantiated stdout console."""
        from rich.console import Console

        current = getattr(self._console, "file", None)
        if self._console is None or current is not sys.stdout:
            self._console = Console(file=sys.stdout)
        return self._console

    @property
    def err_console(self) -> Console:
        """Return a lazily instantiated stderr console."""
        from rich.console import Console

        current = getattr(self._err_console, "file", None)
        if self._err_console is None or current is not sys.stderr:
            self._err_console = Console(file=sys.stderr, highlight=False)
        return self._err_console

    def get_services(self) -> BibciteServices:
        """Build the pipeline services on first use."""
        if self.services is None:
            from .diagnostics import CliEmitter

            try:
                settings = load_settings(self.settings_path)
            except SettingsError as exc:
                emit_error(str(exc), exception=exc)
                raise typer.Exit(code=2) from exc
            if self.cache_dir is not None:
                settings = settings.model_copy(update={"cache_dir": self.cache_dir})
            self.services = BibciteServices.from_settings(
                settings,
                user_dir=resolve_user_dir(),
                emitter=CliEmitter(self),
            )
        return self.services


_STATE_VAR: ContextVar[CLIState | None] = ContextVar("bibcite_cli_state", default=None)


def get_cli_state(
    ctx: typer.Context | click.Context | None = None,
    *,
    create: bool = True,
) -> CLIState:
    """Return the CLI state associated with the active Typer context."""
    if ctx is None:
        ctx = click.get_current_context(silent=True)

    state: CLIState | None = None
    current_ctx = ctx
    while current_ctx is not None:
        obj = getattr(current_ctx, "obj", None)
        if isinstance(obj, CLIState):
            state = obj
            break
        current_ctx = getattr(current_ctx, "parent", None)

    if state is None and ctx is not None and create:
        state = CLIState()
        ctx.obj = state

    if state is None:
        state = _STATE_VAR.get(None)
        if state is None:
            if not create:
                raise RuntimeError("CLI state is not initialised for this context.")
            state = CLIState()

    _STATE_VAR.set(state)
    return state


def set_cli_state(
    *,
    ctx: typer.Context | None = None,
    verbosity: int | None = None,
    debug: bool | None = None,
    settings_path: Path | None = None,
    cache_dir: Path | None = None,
) -> CLIState:
    """Update the CLI state, returning the current instance."""
    state = get_cli_state(ctx)
    if verbosity is not None:
        state.verbosity = max(0, verbosity)
    if debug is not None:
        state.show_tracebacks = debug
    if settings_path is not None:
        state.settings_path = settings_path
    if cache_dir is not None:
        state.cache_dir = cache_dir
    return state


def configure_logging(state: CLIState) -> None:
    """Route library logging through Rich according to the verbosity."""
    level = _LOG_LEVELS.get(state.verbosity, logging.DEBUG)
    handler = RichHandler(
        console=state.err_console,
        show_path=state.verbosity >= 2,
        rich_tracebacks=state.show_tracebacks,
    )
    root = logging.getLogger("bibcite")
    for existing in list(root.handlers):
        if isinstance(existing, RichHandler):
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)


def _exception_chain(exc: BaseException) -> list[str]:
    chain: list[str] = []
    visited: set[int] = set()
    current = exc.__cause__ or exc.__context__
    while current is not None and id(current) not in visited:
        visited.add(id(current))
        chain.append(f"{type(current).__name__}: {current}")
        current = current.__cause__ or current.__context__
    return chain


def render_message(
    level: str,
    message: str,
    *,
    exception: BaseException | None = None,
) -> None:
    """Render a formatted message to the console, including optional diagnostics."""
    state = get_cli_state()

    if level == "info":
        if state.verbosity >= 1:
            state.err_console.log(message)
        return

    from rich.text import Text

    style = "red" if level == "error" else "yellow"
    text = Text.assemble((f"{level}: ", f"bold {style}"), (message, style))
    extra_lines: list[str] = []
    if exception is not None and state.verbosity >= 1:
        detail = str(exception).strip()
        if detail and detail not in message:
            extra_lines.append(detail)
        extra_lines.append(f"type: {type(exception).__name__}")
        if state.verbosity >= 2:
            chain = _exception_chain(exception)
            if chain:
                extra_lines.append("caused by:")
                extra_lines.extend(f"  {entry}" for entry in chain)

    if extra_lines:
        text.append("\n")
        text.append("\n".join(extra_lines), style=style)

    state.err_console.print(text)


def emit_warning(message: str, *, exception: BaseException | None = None) -> None:
    """Print a warning to stderr respecting verbosity settings."""
    render_message("warning", message, exception=exception)


def emit_error(message: str, *, exception: BaseException | None = None) -> None:
    """Print an error to stderr respecting verbosity settings."""
    render_message("error", message, exception=exception)


def debug_enabled() -> bool:
    """Return whether full tracebacks should be displayed."""
    try:
        return get_cli_state(create=False).show_tracebacks
    except RuntimeError:
        return False
