"""PostgreSQL-backed blob store."""

import logging
from contextlib import asynccontextmanager

import asyncpg

from murmur.config import settings

logger = logging.getLogger(__name__)


# SQL schema for the key-value table
SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""


class PostgresBlobStore:
    """Blob store on a single PostgreSQL table."""

    def __init__(self, database_url: str | None = None):
        self.database_url = database_url or settings.database_url
        self._pool: asyncpg.Pool | None = None

    async def connect(self):
        """Create connection pool."""
        if not self.database_url:
            return
        self._pool = await asyncpg.create_pool(
            self.database_url,
            min_size=1,
            max_size=5,
        )
        logger.info("Connected to PostgreSQL blob store")

    async def disconnect(self):
        """Close connection pool."""
        if self._pool:
            await self._pool.close()
            self._pool = None

    @asynccontextmanager
    async def connection(self):
        """Get a connection from the pool."""
        if not self._pool:
            raise RuntimeError("Database not connected")
        async with self._pool.acquire() as conn:
            yield conn

    async def ensure_tables_exist(self):
        """Create tables if they don't exist."""
        if not self._pool:
            return
        async with self.connection() as conn:
            await conn.execute(SCHEMA_SQL)

    async def get(self, key: str) -> str | None:
        if not self._pool:
            return None
        async with self.connection() as conn:
            row = await conn.fetchrow("SELECT value FROM kv_store WHERE key = $1", key)
        if not row:
            return None
        return row["value"]

    async def set(self, key: str, value: str) -> None:
        if not self._pool:
            return
        async with self.connection() as conn:
            await conn.execute(
                """
                INSERT INTO kv_store (key, value, updated_at)
                VALUES ($1, $2, NOW())
                ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value, updated_at = NOW()
                """,
                key,
                value,
            )

    async def delete(self, key: str) -> None:
        if not self._pool:
            return
        async with self.connection() as conn:
            await conn.execute("DELETE FROM kv_store WHERE key = $1", key)
