"""Library retrieval, parsing, conversion and storage."""

from __future__ import annotations

from .csl import CslConverter, to_csl_json
from .fetcher import Fetcher, fetch_prefix
from .parsing import BibtexParser, RawEntry, parse_entries
from .store import CitationRecord, LibraryStore, scope_id_for
from .sync import LibraryHandle, LibrarySynchronizer, detect_format


__all__ = [
    "BibtexParser",
    "CitationRecord",
    "CslConverter",
    "Fetcher",
    "LibraryHandle",
    "LibraryStore",
    "LibrarySynchronizer",
    "RawEntry",
    "detect_format",
    "fetch_prefix",
    "parse_entries",
    "scope_id_for",
    "to_csl_json",
]
