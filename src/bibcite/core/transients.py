"""Durable key/value area with expirations.

Fetch state (ETags, fetch times, bodies) and library content hashes live here
so that they survive process restarts. Values are JSON-encoded; bytes are
stored as base64 text.
"""

from __future__ import annotations

import base64
from collections.abc import Callable, Iterator
from contextlib import contextmanager
import json
import logging
from pathlib import Path
import sqlite3
import time
from typing import Any


logger = logging.getLogger(__name__)

_BYTES_MARKER = "__bytes__"


def _encode(value: Any) -> str:
    if isinstance(value, bytes):
        return json.dumps({_BYTES_MARKER: base64.b64encode(value).decode("ascii")})
    return json.dumps(value)


def _decode(payload: str) -> Any:
    value = json.loads(payload)
    if isinstance(value, dict) and set(value) == {_BYTES_MARKER}:
        return base64.b64decode(value[_BYTES_MARKER])
    return value


class TransientStore:
    """SQLite-backed transient values keyed by name."""

    def __init__(
        self,
        db_path: Path,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._db_path = Path(db_path)
        self._clock = clock
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

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

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS transients (
                  name TEXT PRIMARY KEY,
                  value TEXT NOT NULL,
                  expires_at REAL NOT NULL
                );
                """
            )

    def get(self, name: str, default: Any = None) -> Any:
        """Return the value stored under ``name`` or ``default`` when absent or expired."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT value, expires_at FROM transients WHERE name = ?", (name,)
            ).fetchone()
        if row is None:
            return default
        value, expires_at = row
        if expires_at <= self._clock():
            self.delete(name)
            return default
        try:
            return _decode(value)
        except (ValueError, TypeError) as exc:
            logger.warning("Discarding unreadable transient '%s': %s", name, exc)
            self.delete(name)
            return default

    def set(self, name: str, value: Any, expires_in: float) -> None:
        """Add or replace a transient that expires ``expires_in`` seconds from now."""
        expires_at = self._clock() + expires_in
        with self._connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO transients (name, value, expires_at) VALUES (?, ?, ?)",
                (name, _encode(value), expires_at),
            )

    def delete(self, name: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM transients WHERE name = ?", (name,))

    def delete_prefix(self, prefix: str) -> int:
        """Delete every transient whose name starts with ``prefix``."""
        escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM transients WHERE name LIKE ? ESCAPE '\\'", (f"{escaped}%",)
            )
            return cursor.rowcount

    def clear(self) -> None:
        """Drop every transient."""
        logger.debug("Clearing transients in %s", self._db_path)
        with self._connect() as conn:
            conn.execute("DELETE FROM transients")


__all__ = ["TransientStore"]
