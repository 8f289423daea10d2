"""Durable CSL-JSON record store partitioned per source library."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
import copy
import hashlib
import json
import logging
from pathlib import Path
import re
import sqlite3
import threading
from typing import Any


logger = logging.getLogger(__name__)

CitationRecord = dict[str, Any]

TABLE_PREFIX = "bibcite_"
_SCOPE_RE = re.compile(r"^[0-9a-f]{32}$")


def scope_id_for(url: str) -> str:
    """Return the stable scope identifier for a source URL."""
    return hashlib.md5(url.encode("utf-8")).hexdigest()


def _table_name(scope_id: str) -> str:
    if not _SCOPE_RE.match(scope_id):
        raise ValueError(f"Invalid library scope id: {scope_id!r}")
    return f"{TABLE_PREFIX}{scope_id}"


class LibraryStore:
    """Keyed store of CSL-JSON records, one SQLite table per library scope.

    Reads go through an in-memory cache keyed by ``(scope_id, key)``. Upserts
    and ``clear_all`` invalidate it. Records are copied on the way in and out
    so callers can never mutate stored state.
    """

    def __init__(self, db_path: Path, *, read_cache: bool = True) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._read_cache_enabled = read_cache
        self._cache: dict[tuple[str, str], CitationRecord | None] = {}
        self._known_scopes: set[str] = set()
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._db_path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self._db_path), timeout=30, check_same_thread=False)
        try:
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            with conn:
                yield conn
        finally:
            conn.close()

    def ensure_scope(self, scope_id: str) -> None:
        """Create the scope's table when it does not exist yet."""
        if scope_id in self._known_scopes:
            return
        table = _table_name(scope_id)
        with self._connect() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {table} (
                  csl_key TEXT PRIMARY KEY,
                  csl_value TEXT NOT NULL
                );
                """
            )
        logger.debug("Using table '%s' for library scope %s", table, scope_id)
        with self._lock:
            self._known_scopes.add(scope_id)

    def upsert(self, scope_id: str, key: str, record: CitationRecord) -> None:
        """Replace the record stored under ``key`` in full."""
        self.ensure_scope(scope_id)
        payload = json.dumps(record, ensure_ascii=False)
        with self._connect() as conn:
            conn.execute(
                f"INSERT OR REPLACE INTO {_table_name(scope_id)} (csl_key, csl_value) "
                "VALUES (?, ?)",
                (key, payload),
            )
        with self._lock:
            self._cache.pop((scope_id, key), None)

    def get(self, scope_id: str, key: str) -> CitationRecord | None:
        """Return a copy of the record stored under ``key``, or None."""
        cache_key = (scope_id, key)
        if self._read_cache_enabled:
            with self._lock:
                if cache_key in self._cache:
                    cached = self._cache[cache_key]
                    return copy.deepcopy(cached) if cached is not None else None

        record = self._read(scope_id, key)
        if self._read_cache_enabled:
            with self._lock:
                self._cache[cache_key] = record
        return copy.deepcopy(record) if record is not None else None

    def _read(self, scope_id: str, key: str) -> CitationRecord | None:
        self.ensure_scope(scope_id)
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT csl_value FROM {_table_name(scope_id)} WHERE csl_key = ?", (key,)
            ).fetchone()
        if row is None:
            return None
        try:
            record = json.loads(row[0])
        except ValueError as exc:
            logger.warning("Stored record '%s' in scope %s is unreadable: %s", key, scope_id, exc)
            return None
        return record if isinstance(record, dict) else None

    def keys(self, scope_id: str) -> list[str]:
        """Return every key stored in a scope, sorted."""
        self.ensure_scope(scope_id)
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT csl_key FROM {_table_name(scope_id)} ORDER BY csl_key"
            ).fetchall()
        return [row[0] for row in rows]

    def scopes(self) -> list[str]:
        """Return the scope ids that currently have a table."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table' AND name LIKE ?",
                (f"{TABLE_PREFIX}%",),
            ).fetchall()
        candidates = (row[0][len(TABLE_PREFIX) :] for row in rows)
        return sorted(scope for scope in candidates if _SCOPE_RE.match(scope))

    def clear_all(self) -> None:
        """Drop every scope and empty the read cache."""
        for scope_id in self.scopes():
            logger.debug("Dropping library table for scope %s", scope_id)
            with self._connect() as conn:
                conn.execute(f"DROP TABLE IF EXISTS {_table_name(scope_id)}")
        with self._lock:
            self._cache.clear()
            self._known_scopes.clear()


__all__ = ["TABLE_PREFIX", "CitationRecord", "LibraryStore", "scope_id_for"]
