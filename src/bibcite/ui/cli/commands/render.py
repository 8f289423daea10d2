"""`bibcite render`: expand citation shortcodes in a document."""

from __future__ import annotations

from pathlib import Path
import sys
from typing import Annotated

import typer

from ..state import emit_error, get_cli_state


def render(
    input_path: Annotated[
        Path,
        typer.Argument(
            help="Document with citation shortcodes ('-' reads stdin).",
            allow_dash=True,
        ),
    ],
    document_id: Annotated[
        str | None,
        typer.Option(
            "--document-id",
            help="Identifier scoping the citation state (defaults to the input path).",
        ),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Write the expanded document to this file instead of stdout.",
            dir_okay=False,
        ),
    ] = None,
) -> None:
    """Expand the citation shortcodes of a document into HTML."""
    state = get_cli_state()

    if str(input_path) == "-":
        text = sys.stdin.read()
        identifier = document_id or "stdin"
    else:
        try:
            text = input_path.read_text(encoding="utf-8")
        except OSError as exc:
            emit_error(f"Unable to read '{input_path}'.", exception=exc)
            raise typer.Exit(code=1) from exc
        identifier = document_id or str(input_path)

    rendered = state.get_services().render_text(text, identifier)

    if output is None:
        typer.echo(rendered, nl=False)
        return
    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(rendered, encoding="utf-8")
    except OSError as exc:
        emit_error(f"Unable to write '{output}'.", exception=exc)
        raise typer.Exit(code=1) from exc
    state.console.print(f"[green]Wrote[/] {output}")


__all__ = ["render"]
