"""SQLite storage for request logs, and the user models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import aiosqlite

from owaf.config import DbConfig


@dataclass
class SafeUser:
    """A user as shown to clients, without credentials."""

    id: str
    username: str


@dataclass
class User:
    """A stored user account."""

    id: str
    username: str
    password: str = field(repr=False)

    def to_safe(self) -> SafeUser:
        """Return the user without the password."""
        return SafeUser(id=self.id, username=self.username)


def sqlite_path(url: str) -> str:
    """Turn a ``sqlite:`` database URL into a path for the sqlite driver."""
    if not url.startswith("sqlite:"):
        raise ValueError(f"unsupported database url: {url!r}")
    rest = url[len("sqlite:"):].split("?", 1)[0]
    if rest.startswith("//"):
        rest = rest[2:]
    if rest in ("", ":memory:"):
        return ":memory:"
    return rest


class Database:
    """An open SQLite connection holding the request log table."""

    def __init__(self, connection: aiosqlite.Connection) -> None:
        self._conn = connection

    @classmethod
    async def connect(cls, url: str) -> Database:
        """Open the database named by ``url`` and make sure the log table exists."""
        conn = await aiosqlite.connect(sqlite_path(url))
        await conn.execute("CREATE TABLE IF NOT EXISTS logs (message TEXT)")
        await conn.commit()
        return cls(conn)

    async def close(self) -> None:
        await self._conn.close()

    async def __aenter__(self) -> Database:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def insert_log(self, message: str) -> None:
        """Append one message to the log table."""
        await self._conn.execute("INSERT INTO logs (message) VALUES (?)", (message,))
        await self._conn.commit()

    async def recent_logs(self, limit: int = 100) -> list[dict[str, Any]]:
        """Return the newest log rows first, each with its row id and message."""
        async with self._conn.execute(
            "SELECT rowid AS id, message FROM logs ORDER BY rowid DESC LIMIT ?", (limit,)
        ) as cursor:
            rows = await cursor.fetchall()
        return [{"id": row[0], "message": row[1]} for row in rows]


_database: Database | None = None


async def init(config: DbConfig) -> Database:
    """Connect to the configured database and install it as the global one."""
    global _database
    _database = await Database.connect(config.url)
    return _database


def pool() -> Database:
    """Return the global database."""
    if _database is None:
        raise RuntimeError("database should be initialised")
    return _database