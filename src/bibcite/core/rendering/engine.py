"""Style engine boundary and its citeproc-py implementation."""

from __future__ import annotations

from collections.abc import Sequence
import logging
from pathlib import Path
from threading import Lock
from typing import Protocol, runtime_checkable

from citeproc import (
    Citation,
    CitationItem,
    CitationStylesBibliography,
    CitationStylesStyle,
    formatter,
)
from citeproc.source.json import CiteProcJSON
from citeproc.types import ARTICLE

from ..config import RenderMode
from ..exceptions import StyleEngineError
from ..library.store import CitationRecord
from .styles import ResolvedStyle


logger = logging.getLogger(__name__)

FALLBACK_TYPE = ARTICLE


@runtime_checkable
class StyleEngine(Protocol):
    """Render CSL-JSON records with a resolved style."""

    def render(
        self, style: ResolvedStyle, records: Sequence[CitationRecord], mode: RenderMode
    ) -> str: ...


class CiteprocStyleEngine:
    """`StyleEngine` backed by citeproc-py and its HTML formatter.

    Parsed styles are cached per file path. Missing citation items, unusable
    style files and malformed records surface as `StyleEngineError`.
    """

    def __init__(self, *, locale: str | None = None) -> None:
        self._locale = locale
        self._styles: dict[Path, CitationStylesStyle] = {}
        self._lock = Lock()

    def render(
        self, style: ResolvedStyle, records: Sequence[CitationRecord], mode: RenderMode
    ) -> str:
        csl_style = self._load_style(style)
        try:
            source = CiteProcJSON([_engine_input(record) for record in records])
        except (KeyError, TypeError, ValueError) as exc:
            raise StyleEngineError(f"invalid CSL-JSON record: {exc}") from exc

        bibliography = CitationStylesBibliography(csl_style, source, formatter.html)
        citation = Citation([CitationItem(str(record["id"])) for record in records])
        bibliography.register(citation)

        if mode == "bibliography":
            return "".join(str(item) for item in bibliography.bibliography())
        return str(bibliography.cite(citation, _missing_item))

    def _load_style(self, style: ResolvedStyle) -> CitationStylesStyle:
        with self._lock:
            cached = self._styles.get(style.path)
        if cached is not None:
            return cached
        try:
            loaded = CitationStylesStyle(str(style.path), locale=self._locale, validate=False)
        except (OSError, ValueError, SyntaxError) as exc:
            raise StyleEngineError(f"unable to load style '{style.name}': {exc}") from exc
        with self._lock:
            self._styles[style.path] = loaded
        return loaded


def _engine_input(record: CitationRecord) -> CitationRecord:
    """Return a copy of ``record`` carrying the CSL type the engine requires."""
    data = dict(record)
    if not data.get("type"):
        data["type"] = FALLBACK_TYPE
    return data


def _missing_item(item: CitationItem) -> None:
    raise StyleEngineError(f"reference '{item.key}' is not in the library")


__all__ = ["FALLBACK_TYPE", "CiteprocStyleEngine", "StyleEngine"]
