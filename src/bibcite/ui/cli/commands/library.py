"""`bibcite sync` and `bibcite show`: inspect remote libraries."""

from __future__ import annotations

import json
from typing import Annotated

import typer

from ..state import emit_error, get_cli_state


def sync(
    url: Annotated[str, typer.Argument(help="URL of a BibTeX or CSL-JSON library.")],
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            help="Ignore the dormancy window and the last ETag.",
        ),
    ] = False,
) -> None:
    """Fetch a library and merge its records into the local store."""
    state = get_cli_state()
    services = state.get_services()
    changed = services.synchronizer.synchronise(url, force_refresh=force)
    handle = services.synchronizer.get_or_update(url)
    count = len(handle.keys())
    status = "updated" if changed else "unchanged"
    state.console.print(f"{url}: {status}, {count} entries stored")


def show(
    url: Annotated[str, typer.Argument(help="URL of a BibTeX or CSL-JSON library.")],
    key: Annotated[str, typer.Argument(help="Citation key to display.")],
) -> None:
    """Print the stored CSL-JSON record of a citation key."""
    state = get_cli_state()
    handle = state.get_services().synchronizer.get_or_update(url)
    record = handle.get(key)
    if record is None:
        emit_error(f"No entry '{key}' in {url}.")
        raise typer.Exit(code=1)
    typer.echo(json.dumps(record, indent=2, ensure_ascii=False))


__all__ = ["show", "sync"]
