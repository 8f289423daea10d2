"""Parsing helpers turning BibTeX payloads into structured entries."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from pathlib import Path
import time

from pybtex.database import BibliographyData, Entry, Person
from pybtex.database.input import bibtex
from pybtex.exceptions import PybtexError


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RawEntry:
    """One parsed BibTeX entry.

    `fields` holds the raw field values keyed by lower-case field name,
    `persons` the parsed names per role, and `original` the entry serialised
    back to BibTeX.
    """

    key: str
    type: str
    fields: dict[str, str] = field(default_factory=dict)
    persons: dict[str, tuple[Person, ...]] = field(default_factory=dict)
    original: str = ""


def _raw_entry(key: str, entry: Entry) -> RawEntry:
    fields = {str(name).lower(): str(value) for name, value in entry.fields.items()}
    persons = {str(role).lower(): tuple(people) for role, people in entry.persons.items()}
    try:
        original = BibliographyData(entries={key: entry}).to_string("bibtex")
    except PybtexError:
        original = ""
    return RawEntry(
        key=key,
        type=entry.type.lower(),
        fields=fields,
        persons=persons,
        original=original,
    )


class BibtexParser:
    """Parse BibTeX strings or files, logging failures instead of raising."""

    def parse_string(self, text: str) -> list[RawEntry]:
        """Return the entries of a BibTeX payload, or an empty list on failure."""
        started = time.monotonic()
        try:
            data = bibtex.Parser().parse_string(text)
        except (PybtexError, ValueError) as exc:
            logger.error("Failed to parse BibTeX payload: %s", exc)
            return []
        return self._entries(data, started)

    def parse_file(self, path: Path | str) -> list[RawEntry]:
        """Return the entries of a BibTeX file, or an empty list on failure."""
        started = time.monotonic()
        file_path = Path(path)
        try:
            data = bibtex.Parser().parse_file(str(file_path))
        except (OSError, PybtexError, UnicodeDecodeError) as exc:
            logger.error("Failed to parse '%s': %s", file_path, exc)
            return []
        return self._entries(data, started)

    def _entries(self, data: BibliographyData, started: float) -> list[RawEntry]:
        entries = [_raw_entry(key, entry) for key, entry in data.entries.items()]
        logger.debug(
            "Parsed %d entries in %.3fs.", len(entries), time.monotonic() - started
        )
        return entries


def parse_entries(text: str) -> list[RawEntry]:
    """Shortcut for `BibtexParser().parse_string`."""
    return BibtexParser().parse_string(text)


__all__ = ["BibtexParser", "RawEntry", "parse_entries"]
