"""Async access to the assistant's libsql database.

The ``libsql`` driver is synchronous, so every call is pushed onto a worker
thread with ``asyncio.to_thread()``.  Where the connection points:

- ``TURSO_DATABASE_URL`` + ``TURSO_AUTH_TOKEN`` set → remote Turso database
- otherwise → local SQLite file at ``database_path``

Stores use :func:`connect`, which opens a connection for a single unit of
work, applies the store's schema the first time a target is seen, and closes
the connection on exit.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import libsql

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence
    from pathlib import Path

from modern.config import settings

logger = logging.getLogger(__name__)

# Targets whose schema has already been applied in this process.
_schema_applied: set[tuple[str, tuple[str, ...]]] = set()


class _AsyncCursor:
    """Async view of a libsql cursor."""

    def __init__(self, cursor: Any) -> None:
        self._cursor = cursor

    async def fetchone(self) -> tuple | None:
        return await asyncio.to_thread(self._cursor.fetchone)

    async def fetchall(self) -> list[tuple]:
        return await asyncio.to_thread(self._cursor.fetchall)

    @property
    def rowcount(self) -> int:
        return self._cursor.rowcount


class _AsyncConnection:
    """Async view of a libsql connection."""

    def __init__(self, conn: Any, target: str) -> None:
        self._conn = conn
        self.target = target

    async def execute(self, sql: str, params: tuple = ()) -> _AsyncCursor:
        cursor = await asyncio.to_thread(self._conn.execute, sql, params)
        return _AsyncCursor(cursor)

    async def commit(self) -> None:
        await asyncio.to_thread(self._conn.commit)

    async def close(self) -> None:
        await asyncio.to_thread(self._conn.close)


def _open_local(path: str) -> Any:
    conn = libsql.connect(path)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA busy_timeout=5000")
    return conn


async def get_connection(local_path_override: Path | None = None) -> _AsyncConnection:
    """Open a connection to the configured database.

    *local_path_override* wins over everything else and is how tests
    isolate themselves in ``tmp_path``.
    """
    if local_path_override:
        local_path_override.parent.mkdir(parents=True, exist_ok=True)
        target = str(local_path_override)
        conn = await asyncio.to_thread(_open_local, target)
        return _AsyncConnection(conn, target)

    if settings.turso_database_url:
        conn = await asyncio.to_thread(
            libsql.connect,
            database=settings.turso_database_url,
            auth_token=settings.turso_auth_token,
        )
        return _AsyncConnection(conn, settings.turso_database_url)

    settings.database_path.parent.mkdir(parents=True, exist_ok=True)
    target = str(settings.database_path)
    conn = await asyncio.to_thread(_open_local, target)
    return _AsyncConnection(conn, target)


@asynccontextmanager
async def connect(
    local_path_override: Path | None = None,
    schema: Sequence[str] = (),
) -> AsyncIterator[_AsyncConnection]:
    """Yield a connection for one unit of work, creating *schema* if needed."""
    db = await get_connection(local_path_override)
    try:
        key = (db.target, tuple(schema))
        if schema and key not in _schema_applied:
            for statement in schema:
                await db.execute(statement)
            await db.commit()
            _schema_applied.add(key)
            logger.debug("Schema applied to %s", db.target)
        yield db
    finally:
        await db.close()
