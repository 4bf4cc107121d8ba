"""Persistent content-addressed cache of interpreted commands."""

from __future__ import annotations

import hashlib
import json
import logging
import sqlite3
import time
from collections.abc import Callable, Iterator
from contextlib import closing, contextmanager
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError

from taskpilot.commands.errors import CacheError
from taskpilot.commands.types import StructuredCommand

_LOGGER = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 7 * 24 * 3600


class CacheStats(BaseModel):
    """Snapshot of cache usage."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    total_entries: int
    total_bytes: int
    expired_entries: int
    total_accesses: int
    ttl_seconds: int


def normalize_input(text: str) -> str:
    """Trim, collapse whitespace and lower-case cache input."""
    return " ".join(text.split()).lower()


def input_hash(text: str) -> str:
    """Return hex sha256 digest of normalized input."""
    return hashlib.sha256(normalize_input(text).encode("utf-8")).hexdigest()


class ResponseCache:
    """SQLite-backed TTL cache keyed by normalized input hash."""

    def __init__(
        self,
        sqlite_path: Path,
        *,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Open cache storage and ensure schema exists.

        Args:
            sqlite_path: SQLite file path for cached responses.
            ttl_seconds: Entry lifetime in seconds.
            clock: Wall clock returning epoch seconds.

        Raises:
            CacheError: If storage cannot be opened.
        """
        self._sqlite_path = sqlite_path
        self._clock = clock
        self.ttl = ttl_seconds
        try:
            self._sqlite_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CacheError(f"cache directory unavailable: {exc}") from exc
        self._initialize()

    @property
    def ttl(self) -> int:
        """Return entry lifetime in seconds."""
        return self._ttl

    @ttl.setter
    def ttl(self, seconds: int) -> None:
        if seconds < 0:
            raise ValueError("ttl must be non-negative")
        self._ttl = int(seconds)

    def get(self, text: str) -> StructuredCommand | None:
        """Return cached command for ``text``; any failure is a miss.

        Args:
            text: Raw natural-language input.

        Returns:
            Cached command, or ``None`` on miss, expiry or decode failure.
        """
        key = input_hash(text)
        now = self._now()
        try:
            with self._transaction() as conn:
                row = conn.execute(
                    "SELECT response_data, cached_at FROM nlp_responses WHERE hash = ?",
                    (key,),
                ).fetchone()
                if row is None:
                    _LOGGER.debug("cache miss: %s", key[:12])
                    return None
                payload, cached_at = row
                if now - int(cached_at) > self._ttl:
                    conn.execute("DELETE FROM nlp_responses WHERE hash = ?", (key,))
                    _LOGGER.debug("cache expired: %s", key[:12])
                    return None
                conn.execute(
                    (
                        "UPDATE nlp_responses "
                        "SET last_accessed = ?, access_count = access_count + 1 "
                        "WHERE hash = ?"
                    ),
                    (now, key),
                )
        except CacheError as exc:
            _LOGGER.debug("cache read degraded to miss: %s", exc)
            return None
        try:
            envelope = json.loads(bytes(payload).decode("utf-8"))
            command = StructuredCommand.model_validate(envelope["command"])
        except (ValueError, KeyError, TypeError, ValidationError) as exc:
            _LOGGER.debug("cache entry undecodable, treating as miss: %s", exc)
            return None
        _LOGGER.debug("cache hit: %s", key[:12])
        return command

    def put(self, text: str, command: StructuredCommand) -> None:
        """Store ``command`` for ``text``, replacing any prior entry.

        Raises:
            CacheError: If serialization or storage fails.
        """
        now = self._now()
        try:
            payload = json.dumps(
                {
                    "command": command.model_dump(mode="json"),
                    "cached_at": now,
                    "access_count": 1,
                },
                ensure_ascii=False,
            ).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise CacheError(f"cannot serialize command: {exc}") from exc
        with self._transaction() as conn:
            conn.execute(
                (
                    "INSERT OR REPLACE INTO nlp_responses "
                    "(hash, input, response_data, cached_at, last_accessed, access_count) "
                    "VALUES (?, ?, ?, ?, ?, 1)"
                ),
                (input_hash(text), text, payload, now, now),
            )

    def clear(self) -> None:
        """Remove every cached entry.

        Raises:
            CacheError: If storage fails.
        """
        with self._transaction() as conn:
            conn.execute("DELETE FROM nlp_responses")

    def cleanup(self) -> int:
        """Delete entries older than the TTL.

        Returns:
            Number of deleted entries.

        Raises:
            CacheError: If storage fails.
        """
        cutoff = self._now() - self._ttl
        with self._transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM nlp_responses WHERE cached_at < ?", (cutoff,)
            )
            removed = cursor.rowcount
        _LOGGER.debug("cache cleanup removed %d entries", removed)
        return removed

    def stats(self) -> CacheStats:
        """Return usage statistics, counting stale rows not yet removed.

        Raises:
            CacheError: If storage fails.
        """
        cutoff = self._now() - self._ttl
        with self._transaction() as conn:
            total, total_bytes, accesses = conn.execute(
                (
                    "SELECT COUNT(*), COALESCE(SUM(LENGTH(response_data)), 0), "
                    "COALESCE(SUM(access_count), 0) FROM nlp_responses"
                )
            ).fetchone()
            expired = conn.execute(
                "SELECT COUNT(*) FROM nlp_responses WHERE cached_at < ?", (cutoff,)
            ).fetchone()[0]
        return CacheStats(
            total_entries=int(total),
            total_bytes=int(total_bytes),
            expired_entries=int(expired),
            total_accesses=int(accesses),
            ttl_seconds=self._ttl,
        )

    def _now(self) -> int:
        return int(self._clock())

    def _initialize(self) -> None:
        """Create cache schema if missing."""
        with self._transaction() as conn:
            conn.execute(
                "CREATE TABLE IF NOT EXISTS nlp_responses ("
                "hash TEXT PRIMARY KEY,"
                "input TEXT NOT NULL,"
                "response_data BLOB NOT NULL,"
                "cached_at INTEGER NOT NULL,"
                "last_accessed INTEGER NOT NULL,"
                "access_count INTEGER NOT NULL DEFAULT 1"
                ")"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_cached_at ON nlp_responses (cached_at)"
            )

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Yield a committed connection, mapping sqlite failures to CacheError."""
        try:
            with closing(sqlite3.connect(self._sqlite_path)) as conn:
                conn.execute("PRAGMA journal_mode=WAL;")
                yield conn
                conn.commit()
        except sqlite3.Error as exc:
            raise CacheError(f"response cache unavailable: {exc}") from exc
