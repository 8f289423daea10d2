"""Typer application wiring for the bibcite CLI."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from bibcite.version import get_version

from .commands import clear_cache, render, show, styles, sync, templates
from .state import configure_logging, debug_enabled, emit_error, get_cli_state, set_cli_state


app = typer.Typer(
    help="Render citations and bibliographies from remote BibTeX or CSL-JSON libraries.",
    context_settings={"help_option_names": ["--help"]},
    no_args_is_help=True,
)


def _print_version(value: bool) -> None:
    if value:
        typer.echo(get_version())
        raise typer.Exit()


@app.callback()
def configure(
    ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            help="Show the installed version and exit.",
            callback=_print_version,
            is_eager=True,
        ),
    ] = False,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose",
            "-v",
            count=True,
            help="Increase CLI verbosity. Combine multiple times for additional diagnostics.",
        ),
    ] = 0,
    debug: Annotated[
        bool,
        typer.Option(
            "--debug",
            help="Show full tracebacks when an unexpected error occurs.",
        ),
    ] = False,
    settings: Annotated[
        Path | None,
        typer.Option(
            "--settings",
            help="YAML settings file.",
            exists=True,
            dir_okay=False,
        ),
    ] = None,
    cache_dir: Annotated[
        Path | None,
        typer.Option(
            "--cache-dir",
            help="Override the cache directory holding the library stores.",
            file_okay=False,
        ),
    ] = None,
) -> None:
    """Configure diagnostics and settings shared by every command."""
    state = set_cli_state(
        ctx=ctx,
        verbosity=verbose,
        debug=debug,
        settings_path=settings,
        cache_dir=cache_dir,
    )
    configure_logging(state)


app.command()(render)
app.command()(sync)
app.command()(show)
app.command()(styles)
app.command()(templates)
app.command(name="clear-cache")(clear_cache)


def main() -> None:
    """Entry point compatible with console scripts."""
    try:
        app()
    except KeyboardInterrupt as exc:
        if debug_enabled():
            raise
        emit_error("Operation cancelled by user.", exception=exc)
        raise SystemExit(1) from exc
    except Exception as exc:  # pragma: no cover
        state = get_cli_state()
        if state.show_tracebacks:
            from rich.traceback import Traceback

            tb = Traceback.from_exception(
                type(exc),
                exc,
                exc.__traceback__,
                show_locals=state.verbosity >= 2,
            )
            state.err_console.print(tb)
        else:
            emit_error(str(exc), exception=exc)
        raise SystemExit(1) from exc


__all__ = ["app", "main"]
