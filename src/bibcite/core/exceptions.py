"""Custom exception hierarchy for the citation pipeline.

Every error below is recovered at a pipeline boundary (fetcher, parser,
converter, renderer) and never escapes to the page being rendered, with the
exception of `SettingsError` which signals an operator mistake.
"""

from __future__ import annotations


class BibciteError(RuntimeError):
    """Base exception for citation pipeline failures."""


class FetchError(BibciteError):
    """Raised when a remote library cannot be retrieved."""


class LibraryParseError(BibciteError):
    """Raised when a library payload cannot be parsed."""


class ConversionError(BibciteError):
    """Raised when a single BibTeX entry cannot be converted to CSL-JSON."""


class StyleEngineError(BibciteError):
    """Raised when the style engine reports a recoverable rendering error."""


class TemplateRenderError(BibciteError):
    """Raised when a list template cannot be applied."""


class SettingsError(BibciteError):
    """Raised when a settings file is missing or invalid."""


def exception_messages(exc: BaseException) -> list[str]:
    """Return the collected message chain for an exception and its causes."""
    messages: list[str] = []
    visited: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in visited:
        visited.add(id(current))
        text = str(current).strip()
        if text:
            first_line = text.splitlines()[0].strip()
            if first_line:
                messages.append(first_line)
        current = current.__cause__ or current.__context__
    return messages


def exception_hint(exc: BaseException) -> str | None:
    """Return the most specific message available for an exception chain."""
    messages = exception_messages(exc)
    return messages[-1] if messages else None


__all__ = [
    "BibciteError",
    "ConversionError",
    "FetchError",
    "LibraryParseError",
    "SettingsError",
    "StyleEngineError",
    "TemplateRenderError",
    "exception_hint",
    "exception_messages",
]
