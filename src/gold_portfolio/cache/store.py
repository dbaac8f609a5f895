"""Versioned cache store: named generations of request -> response entries.

Backed by SQLite through aiosqlite. Each generation is a separate named
container (``<namespace>-<generation>``); entries are whole responses keyed
by method + URL. There is no expiry inside a generation. Old generations
disappear only through ``purge_all_except`` when a new one is activated.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from gold_portfolio.cache.models import RequestIdentity, StoredResponse
from gold_portfolio.core.config import CacheConfig
from gold_portfolio.core.exceptions import StoreUnavailable

logger = logging.getLogger(__name__)

_SCHEMA = [
    """CREATE TABLE IF NOT EXISTS generations (
        name TEXT PRIMARY KEY,
        created_at TEXT NOT NULL
    )""",
    """CREATE TABLE IF NOT EXISTS entries (
        name TEXT NOT NULL,
        method TEXT NOT NULL,
        url TEXT NOT NULL,
        url_base TEXT NOT NULL,
        status INTEGER NOT NULL,
        headers_json TEXT NOT NULL,
        body BLOB NOT NULL,
        stored_at TEXT NOT NULL,
        PRIMARY KEY (name, method, url)
    )""",
    "CREATE INDEX IF NOT EXISTS idx_entries_base ON entries (name, method, url_base)",
]


class CacheHandle:
    """An opened generation. Obtained per operation from VersionedCacheStore.open()."""

    def __init__(self, store: VersionedCacheStore, generation: str) -> None:
        self._store = store
        self.generation = generation

    async def match(
        self, identity: RequestIdentity, ignore_query: bool = False
    ) -> StoredResponse | None:
        """Look up a stored response.

        With ``ignore_query`` the query string of both the request and the
        stored entries is disregarded; the most recently stored match wins.
        """
        return await self._store._match(self.generation, identity, ignore_query)

    async def put(self, identity: RequestIdentity, response: StoredResponse) -> None:
        """Store a response, replacing any previous entry for the identity."""
        await self._store._put(self.generation, identity, response)


class VersionedCacheStore:
    """SQLite-backed store of cache generations for one app namespace.

    Parameters
    ----------
    config : CacheConfig
        Supplies the database path and the namespace that prefixes every
        generation name this app owns.
    """

    def __init__(self, config: CacheConfig) -> None:
        self._path = config.sqlite_path
        self._prefix = f"{config.namespace}-"
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open the connection and create tables."""
        try:
            if self._path != ":memory:":
                Path(self._path).parent.mkdir(parents=True, exist_ok=True)
            self._db = await aiosqlite.connect(self._path)
            await self._db.execute("PRAGMA journal_mode=WAL")
            for sql in _SCHEMA:
                await self._db.execute(sql)
            await self._db.commit()
        except (sqlite3.Error, OSError) as e:
            raise StoreUnavailable(
                f"Failed to initialize cache store: {e}",
                context={"operation": "initialize", "path": self._path},
            ) from e

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    def _name(self, generation: str) -> str:
        return self._prefix + generation

    def _conn(self, operation: str, generation: str | None = None) -> aiosqlite.Connection:
        if self._db is None:
            raise StoreUnavailable(
                "Cache store is not open",
                context={"operation": operation, "generation": generation},
            )
        return self._db

    # --- Generations ---

    async def open(self, generation: str) -> CacheHandle:
        """Return a handle to ``generation``, creating it if needed."""
        db = self._conn("open", generation)
        try:
            await db.execute(
                "INSERT OR IGNORE INTO generations (name, created_at) VALUES (?, ?)",
                (self._name(generation), _now()),
            )
            await db.commit()
        except sqlite3.Error as e:
            raise StoreUnavailable(
                f"Failed to open generation {generation}: {e}",
                context={"operation": "open", "generation": generation},
            ) from e
        return CacheHandle(self, generation)

    async def list_generations(self) -> set[str]:
        """All generation ids belonging to this namespace."""
        db = self._conn("list")
        try:
            async with db.execute("SELECT name FROM generations") as cursor:
                rows = await cursor.fetchall()
        except sqlite3.Error as e:
            raise StoreUnavailable(
                f"Failed to list generations: {e}", context={"operation": "list"}
            ) from e
        return {
            row[0][len(self._prefix) :]
            for row in rows
            if row[0].startswith(self._prefix)
        }

    async def purge_all_except(self, generation: str) -> set[str]:
        """Delete every generation of this namespace other than ``generation``.

        Returns the ids that were deleted.
        """
        doomed = await self.list_generations() - {generation}
        if not doomed:
            return set()

        db = self._conn("purge", generation)
        names = [(self._name(g),) for g in doomed]
        try:
            await db.executemany("DELETE FROM entries WHERE name = ?", names)
            await db.executemany("DELETE FROM generations WHERE name = ?", names)
            await db.commit()
        except sqlite3.Error as e:
            raise StoreUnavailable(
                f"Failed to purge generations: {e}",
                context={"operation": "purge", "generation": generation},
            ) from e

        logger.info("Purged cache generations: %s", ", ".join(sorted(doomed)))
        return doomed

    # --- Entries ---

    async def _match(
        self, generation: str, identity: RequestIdentity, ignore_query: bool
    ) -> StoredResponse | None:
        db = self._conn("match", generation)
        if ignore_query:
            sql = """SELECT status, headers_json, body FROM entries
                     WHERE name = ? AND method = ? AND url_base = ?
                     ORDER BY rowid DESC LIMIT 1"""
            key = identity.url_without_query
        else:
            sql = """SELECT status, headers_json, body FROM entries
                     WHERE name = ? AND method = ? AND url = ?"""
            key = identity.url
        try:
            async with db.execute(
                sql, (self._name(generation), identity.method, key)
            ) as cursor:
                row = await cursor.fetchone()
        except sqlite3.Error as e:
            raise StoreUnavailable(
                f"Cache lookup failed: {e}",
                context={"operation": "match", "generation": generation},
            ) from e

        if row is None:
            return None
        return StoredResponse(
            status=row[0], headers=json.loads(row[1]), body=bytes(row[2])
        )

    async def _put(
        self, generation: str, identity: RequestIdentity, response: StoredResponse
    ) -> None:
        db = self._conn("put", generation)
        try:
            await db.execute(
                """INSERT OR REPLACE INTO entries
                   (name, method, url, url_base, status, headers_json, body, stored_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    self._name(generation),
                    identity.method,
                    identity.url,
                    identity.url_without_query,
                    response.status,
                    json.dumps(response.headers),
                    response.body,
                    _now(),
                ),
            )
            await db.commit()
        except sqlite3.Error as e:
            raise StoreUnavailable(
                f"Cache write failed: {e}",
                context={"operation": "put", "generation": generation},
            ) from e
        logger.debug("Cached %s %s in %s", identity.method, identity.url, generation)

    async def count_entries(self, generation: str) -> int:
        """Number of entries stored under ``generation``."""
        db = self._conn("count", generation)
        try:
            async with db.execute(
                "SELECT COUNT(*) FROM entries WHERE name = ?", (self._name(generation),)
            ) as cursor:
                row = await cursor.fetchone()
        except sqlite3.Error as e:
            raise StoreUnavailable(
                f"Failed to count entries: {e}",
                context={"operation": "count", "generation": generation},
            ) from e
        return row[0]


async def create_cache_store(config: CacheConfig) -> VersionedCacheStore:
    """Create and initialize the cache store from configuration."""
    store = VersionedCacheStore(config)
    await store.initialize()
    return store


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
