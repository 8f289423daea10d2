"""`bibcite styles`, `bibcite templates` and `bibcite clear-cache`."""

from __future__ import annotations

from collections.abc import Iterable

from rich import box
from rich.table import Table

from ..state import get_cli_state


def _print_names(title: str, names: Iterable[str]) -> None:
    table = Table(title=title, box=box.SQUARE, header_style="bold cyan")
    table.add_column("Name", style="magenta")
    values = list(names)
    if not values:
        table.add_row("-")
    for name in values:
        table.add_row(name)
    get_cli_state().console.print(table)


def styles() -> None:
    """List the available CSL styles."""
    _print_names("Available Styles", get_cli_state().get_services().renderer.style_names())


def templates() -> None:
    """List the available list templates."""
    _print_names("Available Templates", get_cli_state().get_services().renderer.template_names())


def clear_cache() -> None:
    """Drop every cached library, fetch state and compiled template."""
    state = get_cli_state()
    services = state.get_services()
    services.clear_cache()
    state.console.print(f"Cleared citation caches in {services.cache_dir}")


__all__ = ["clear_cache", "styles", "templates"]
