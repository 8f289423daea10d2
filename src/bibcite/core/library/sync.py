"""Synchronisation of remote libraries into the durable record store."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
import hashlib
import json
import logging
from threading import Lock
from typing import Any
from urllib.parse import urlparse

from ..config import TRANSIENT_EXPIRATION_SECONDS, SourceFormat
from ..diagnostics import DiagnosticEmitter, LoggingEmitter
from ..exceptions import LibraryParseError
from ..transients import TransientStore
from .csl import CslConverter
from .fetcher import Fetcher
from .parsing import BibtexParser
from .store import CitationRecord, LibraryStore, scope_id_for


logger = logging.getLogger(__name__)

_HASH_NAMESPACE = "library"


def _hash_name(url: str) -> str:
    return f"{_HASH_NAMESPACE}-{hashlib.md5(url.encode('utf-8')).hexdigest()}-hash"


@dataclass(frozen=True, slots=True)
class LibraryHandle:
    """Read-only view over the records synchronised from one URL."""

    url: str
    scope_id: str
    store: LibraryStore

    def get(self, key: str) -> CitationRecord | None:
        return self.store.get(self.scope_id, key)

    def keys(self) -> list[str]:
        return self.store.keys(self.scope_id)


def detect_format(
    url: str,
    body: bytes,
    overrides: Mapping[str, SourceFormat] | None = None,
) -> SourceFormat:
    """Return the source format of a library payload.

    An explicit override wins, then a ``.json`` URL suffix, then the payload
    itself: a body opening with ``[`` is treated as CSL-JSON.
    """
    if overrides and url in overrides:
        return SourceFormat(overrides[url])
    if urlparse(url).path.lower().endswith(".json"):
        return SourceFormat.CSL_JSON
    if body.lstrip().startswith(b"["):
        return SourceFormat.CSL_JSON
    return SourceFormat.BIBTEX


class LibrarySynchronizer:
    """Keep the record store in step with remote libraries.

    A library is reprocessed only when the md5 of its body differs from the
    hash recorded after the previous successful merge. Handles are cached for
    the lifetime of the synchronizer, so a URL is synchronised at most once
    per process until `clear` is called.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        store: LibraryStore,
        transients: TransientStore,
        *,
        parser: BibtexParser | None = None,
        converter: CslConverter | None = None,
        source_formats: Mapping[str, SourceFormat] | None = None,
        expiration_seconds: float = TRANSIENT_EXPIRATION_SECONDS,
        emitter: DiagnosticEmitter | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._store = store
        self._transients = transients
        self._parser = parser or BibtexParser()
        self._converter = converter or CslConverter()
        self._source_formats = dict(source_formats or {})
        self._expiration = expiration_seconds
        self._emitter = emitter or LoggingEmitter(logger_obj=logger)
        self._handles: dict[str, LibraryHandle] = {}
        self._lock = Lock()

    @property
    def store(self) -> LibraryStore:
        return self._store

    def get_or_update(self, url: str) -> LibraryHandle:
        """Return the handle for ``url``, synchronising the library first if needed."""
        with self._lock:
            cached = self._handles.get(url)
        if cached is not None:
            return cached

        scope_id = scope_id_for(url)
        self._store.ensure_scope(scope_id)
        self.synchronise(url)

        handle = LibraryHandle(url=url, scope_id=scope_id, store=self._store)
        with self._lock:
            self._handles[url] = handle
        return handle

    def synchronise(self, url: str, *, force_refresh: bool = False) -> bool:
        """Fetch ``url`` and merge its records when the content changed.

        Returns True when records were (re)processed.
        """
        scope_id = scope_id_for(url)
        body = self._fetcher.fetch(url, force_refresh=force_refresh)
        if not body:
            logger.debug("No content available for %s", url)
            return False

        new_hash = hashlib.md5(body).hexdigest()
        hash_name = _hash_name(url)
        if self._transients.get(hash_name) == new_hash:
            logger.debug("Library %s unchanged (hash %s)", url, new_hash)
            return False

        source_format = detect_format(url, body, self._source_formats)
        try:
            records, skipped = self._records(body, source_format)
        except LibraryParseError as exc:
            self._emitter.error(f"Unable to parse library {url}: {exc}", exc)
            return False

        for key, record in records:
            self._store.upsert(scope_id, key, record)
        self._transients.set(hash_name, new_hash, self._expiration)
        self._emitter.event(
            "library_parsed",
            {
                "url": url,
                "stored": len(records),
                "skipped": skipped,
                "format": source_format.value,
            },
        )
        return True

    def clear(self) -> None:
        """Forget cached handles and recorded content hashes."""
        with self._lock:
            self._handles.clear()
        self._transients.delete_prefix(f"{_HASH_NAMESPACE}-")

    def _records(
        self, body: bytes, source_format: SourceFormat
    ) -> tuple[list[tuple[str, CitationRecord]], int]:
        text = body.decode("utf-8", errors="replace")
        if source_format is SourceFormat.CSL_JSON:
            return self._csl_json_records(text)
        entries = self._parser.parse_string(text)
        converted = self._converter.convert_all(entries)
        return converted, len(entries) - len(converted)

    def _csl_json_records(self, text: str) -> tuple[list[tuple[str, CitationRecord]], int]:
        try:
            payload: Any = json.loads(text)
        except ValueError as exc:
            raise LibraryParseError(f"invalid CSL-JSON: {exc}") from exc
        if not isinstance(payload, list):
            raise LibraryParseError("CSL-JSON library must be an array of records")

        records: list[tuple[str, CitationRecord]] = []
        skipped = 0
        for item in payload:
            if not isinstance(item, Mapping) or item.get("id") in (None, ""):
                logger.warning("Skipping CSL-JSON record without an 'id': %r", item)
                skipped += 1
                continue
            records.append((str(item["id"]), self._converter.accept_csl_json(item)))
        return records, skipped


__all__ = ["LibraryHandle", "LibrarySynchronizer", "detect_format"]
