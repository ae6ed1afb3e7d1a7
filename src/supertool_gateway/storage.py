"""SQLite cache storage: named cache generations of stored responses.

Entry reads and writes (``match``/``put``) catch ``aiosqlite.Error`` and
degrade gracefully: read failures return ``None`` (treated as a cache miss),
write failures are logged and dropped (the live response is still returned).
Generation lifecycle operations (open, keys, delete, put_all) raise
``GatewayError`` instead, because install and activate must not silently
report success.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import aiosqlite
import structlog

from supertool_gateway.errors import ErrorCode, GatewayError
from supertool_gateway.models.http import GatewayResponse

if TYPE_CHECKING:
    from collections.abc import Sequence

    from supertool_gateway.models.http import GatewayRequest

log = structlog.get_logger()

_CREATE_GENERATION_TABLE = """
CREATE TABLE IF NOT EXISTS cache_generations (
    name       TEXT PRIMARY KEY,
    created_at TEXT NOT NULL
)
"""

_CREATE_ENTRY_TABLE = """
CREATE TABLE IF NOT EXISTS cache_entries (
    generation TEXT NOT NULL REFERENCES cache_generations(name) ON DELETE CASCADE,
    method     TEXT NOT NULL,
    url        TEXT NOT NULL,
    status     INTEGER NOT NULL,
    headers    TEXT NOT NULL,
    body       BLOB NOT NULL,
    stored_at  TEXT NOT NULL,
    PRIMARY KEY (generation, method, url)
)
"""

_UPSERT_ENTRY = (
    "INSERT OR REPLACE INTO cache_entries "
    "(generation, method, url, status, headers, body, stored_at) "
    "VALUES (?, ?, ?, ?, ?, ?, ?)"
)


def _storage_error(action: str, name: str) -> GatewayError:
    return GatewayError(
        code=ErrorCode.CACHE_STORAGE_FAILED,
        message=f"Cache storage failed to {action} generation {name!r}",
        suggestion="Check that the cache database path is writable and not corrupted.",
        recoverable=False,
    )


def _entry_row(
    name: str, request: GatewayRequest, response: GatewayResponse, stored_at: str
) -> tuple:
    method, url = request.cache_key
    return (
        name,
        method,
        url,
        response.status,
        json.dumps(response.headers),
        response.body,
        stored_at,
    )


class CacheHandle:
    """A single cache generation implementing CacheHandleProtocol."""

    def __init__(self, db: aiosqlite.Connection, name: str) -> None:
        self._db = db
        self.name = name

    async def match(self, request: GatewayRequest) -> GatewayResponse | None:
        """Return the stored response for ``request``, or ``None`` on miss or read failure."""
        method, url = request.cache_key
        try:
            cursor = await self._db.execute(
                "SELECT status, headers, body FROM cache_entries "
                "WHERE generation = ? AND method = ? AND url = ?",
                (self.name, method, url),
            )
            row = await cursor.fetchone()
        except aiosqlite.Error:
            log.warning("cache_read_error", generation=self.name, url=url, exc_info=True)
            return None

        if row is None:
            return None
        return GatewayResponse(status=row[0], headers=json.loads(row[1]), body=bytes(row[2]))

    async def put(self, request: GatewayRequest, response: GatewayResponse) -> None:
        """Store ``response`` for ``request``, replacing any previous entry. Non-fatal."""
        now = datetime.now(UTC).isoformat()
        try:
            await self._db.execute(_UPSERT_ENTRY, _entry_row(self.name, request, response, now))
            await self._db.commit()
        except aiosqlite.Error:
            log.warning(
                "cache_write_error", generation=self.name, url=request.url, exc_info=True
            )

    async def put_all(self, entries: Sequence[tuple[GatewayRequest, GatewayResponse]]) -> None:
        """Store every entry in one transaction. Raises GatewayError on failure."""
        now = datetime.now(UTC).isoformat()
        try:
            await self._db.executemany(
                _UPSERT_ENTRY,
                [_entry_row(self.name, request, response, now) for request, response in entries],
            )
            await self._db.commit()
        except aiosqlite.Error as exc:
            await self._db.rollback()
            raise _storage_error("write entries to", self.name) from exc

    async def keys(self) -> list[str]:
        """URLs stored in this generation, in insertion order."""
        try:
            cursor = await self._db.execute(
                "SELECT url FROM cache_entries WHERE generation = ? ORDER BY rowid",
                (self.name,),
            )
            return [row[0] for row in await cursor.fetchall()]
        except aiosqlite.Error as exc:
            raise _storage_error("list entries of", self.name) from exc


class CacheStorage:
    """SQLite-backed set of cache generations implementing CacheStorageProtocol."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def init_db(self) -> None:
        """Create tables and set WAL mode. Called once at startup."""
        await self._db.execute("PRAGMA journal_mode = WAL")
        await self._db.execute("PRAGMA foreign_keys = ON")
        await self._db.execute(_CREATE_GENERATION_TABLE)
        await self._db.execute(_CREATE_ENTRY_TABLE)
        await self._db.commit()

    async def open(self, name: str) -> CacheHandle:
        """Return the generation called ``name``, creating it if absent."""
        try:
            await self._db.execute(
                "INSERT OR IGNORE INTO cache_generations (name, created_at) VALUES (?, ?)",
                (name, datetime.now(UTC).isoformat()),
            )
            await self._db.commit()
        except aiosqlite.Error as exc:
            raise _storage_error("open", name) from exc
        return CacheHandle(self._db, name)

    async def keys(self) -> list[str]:
        """Names of all generations, oldest first."""
        try:
            cursor = await self._db.execute(
                "SELECT name FROM cache_generations ORDER BY created_at, rowid"
            )
            return [row[0] for row in await cursor.fetchall()]
        except aiosqlite.Error as exc:
            raise _storage_error("list", "*") from exc

    async def has(self, name: str) -> bool:
        return name in await self.keys()

    async def delete(self, name: str) -> bool:
        """Delete a generation and all of its entries. Returns False if it did not exist."""
        try:
            await self._db.execute("DELETE FROM cache_entries WHERE generation = ?", (name,))
            cursor = await self._db.execute(
                "DELETE FROM cache_generations WHERE name = ?", (name,)
            )
            deleted = cursor.rowcount > 0
            await self._db.commit()
        except aiosqlite.Error as exc:
            raise _storage_error("delete", name) from exc
        if deleted:
            log.info("cache_generation_deleted", generation=name)
        return deleted
