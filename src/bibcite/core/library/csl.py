"""Conversion of parsed BibTeX entries into canonical CSL-JSON records.

The field, type, name and date mapping is delegated to citeproc-py's BibTeX
source. This module serialises the resulting references to plain CSL-JSON
dictionaries and applies the record policy on top.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import io
import logging
from typing import Any
import warnings

from citeproc.source import Date, DateRange, Name, Reference, VariableError
from citeproc.source.bibtex import BibTeX
from citeproc.string import MixedString
from citeproc.types import WEBPAGE

from ..exceptions import ConversionError
from .parsing import RawEntry
from .store import CitationRecord


logger = logging.getLogger(__name__)

_CONVERSION_ERRORS = (
    AssertionError,
    AttributeError,
    EOFError,
    KeyError,
    SyntaxError,
    TypeError,
    ValueError,
    VariableError,
)


class _LibraryBibTeX(BibTeX):
    """citeproc-py BibTeX source extended with the web entry types and ``url``."""

    fields = {**BibTeX.fields, "url": "URL"}
    types = {**BibTeX.types, "online": WEBPAGE, "electronic": WEBPAGE, "www": WEBPAGE}


def _strip_braces(value: str) -> str:
    return value.replace("{", "").replace("}", "")


def _date_parts(date: Date) -> list[int]:
    parts = [date["year"]]
    for name in ("month", "day"):
        part = dict.get(date, name)
        if part is None:
            break
        parts.append(part)
    return parts


def _csl_value(value: Any) -> Any:
    if isinstance(value, DateRange):
        ranges = [_date_parts(value["begin"])]
        end = dict.get(value, "end")
        if end is not None:
            ranges.append(_date_parts(end))
        return {"date-parts": ranges}
    if isinstance(value, Date):
        issued: dict[str, Any] = {"date-parts": [_date_parts(value)]}
        if dict.get(value, "circa"):
            issued["circa"] = True
        return issued
    if isinstance(value, Name):
        return {part: str(text) for part, text in value.items()}
    if isinstance(value, MixedString):
        return str(value)
    if isinstance(value, list):
        return [_csl_value(item) for item in value]
    if isinstance(value, str):
        return str(value)
    return value


def _reference_to_csl(key: str, reference: Reference) -> CitationRecord:
    record: CitationRecord = {
        "id": key,
        "citation-label": key,
        "type": str(reference.type),
    }
    for name, value in reference.items():
        if name in ("key", "type"):
            continue
        record[name.replace("_", "-")] = _csl_value(value)
    return record


class CslConverter:
    """Convert `RawEntry` objects into CSL-JSON dictionaries."""

    def to_csl_json(self, entry: RawEntry) -> CitationRecord:
        """Return the CSL-JSON record for one entry.

        Braces are stripped from the title, where they only protect
        capitalisation.
        """
        if not entry.key:
            raise ConversionError("Entry has no citation key.")
        if not entry.original:
            raise ConversionError(f"Entry '{entry.key}' has no BibTeX source.")

        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            try:
                source = _LibraryBibTeX(io.StringIO(entry.original))
                reference = source[entry.key.lower()]
            except _CONVERSION_ERRORS as exc:
                raise ConversionError(
                    f"Unable to convert entry '{entry.key}': {exc!r}"
                ) from exc
        for warning in caught:
            logger.debug("Entry %s: %s", entry.key, warning.message)

        record = _reference_to_csl(entry.key, reference)
        if isinstance(record.get("title"), str):
            record["title"] = _strip_braces(record["title"])
        return record

    def convert_all(self, entries: Iterable[RawEntry]) -> list[tuple[str, CitationRecord]]:
        """Convert a batch, skipping (and logging) entries that fail."""
        converted: list[tuple[str, CitationRecord]] = []
        for entry in entries:
            try:
                converted.append((entry.key, self.to_csl_json(entry)))
            except ConversionError as exc:
                logger.warning("Failed to convert BibTeX entry '%s': %s", entry.key, exc)
        return converted

    @staticmethod
    def accept_csl_json(record: Mapping[str, Any]) -> CitationRecord:
        """Return a native CSL-JSON record unchanged."""
        return dict(record)


def to_csl_json(entry: RawEntry) -> CitationRecord:
    """Shortcut for `CslConverter().to_csl_json`."""
    return CslConverter().to_csl_json(entry)


__all__ = ["CslConverter", "to_csl_json"]
