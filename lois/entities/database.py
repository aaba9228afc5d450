"""
Async Postgres access shared by the stores and the SQL executor.

Wraps a psycopg connection pool. Every call is a single statement on a
borrowed connection; no transaction is held across an LLM round-trip.
"""

import logging
from typing import Any

from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

logger = logging.getLogger(__name__)


class Database:
    """
    Pooled Postgres connection for the Supabase database.

    Usage:
        db = Database(settings.SUPABASE_DB_URL)
        await db.open()
        rows = await db.fetch_all("SELECT ... WHERE id = %s", (case_id,))
        await db.close()
    """

    def __init__(self, conninfo: str, min_size: int = 1, max_size: int = 5):
        if not conninfo:
            raise ValueError("SUPABASE_DB_URL environment variable is required")
        self._pool = AsyncConnectionPool(
            conninfo,
            min_size=min_size,
            max_size=max_size,
            kwargs={"row_factory": dict_row},
            open=False,
        )

    async def open(self) -> None:
        await self._pool.open()
        logger.info("Database pool opened")

    async def close(self) -> None:
        await self._pool.close()
        logger.info("Database pool closed")

    async def fetch_all(self, sql: str, params: tuple | dict | None = None) -> list[dict[str, Any]]:
        """Run a parameterised statement and return dict rows."""
        async with self._pool.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(sql, params)
                if cur.description is None:
                    return []
                return await cur.fetchall()

    async def fetch_one(self, sql: str, params: tuple | dict | None = None) -> dict[str, Any] | None:
        rows = await self.fetch_all(sql, params)
        return rows[0] if rows else None

    async def fetch_readonly(self, sql: str, timeout_ms: int) -> list[dict[str, Any]]:
        """
        Run raw (unparameterised) SQL inside a READ ONLY transaction.

        ``sql`` is sent without parameters so literal ``%`` signs survive.
        """
        async with self._pool.connection() as conn:
            async with conn.transaction():
                async with conn.cursor() as cur:
                    await cur.execute("SET TRANSACTION READ ONLY")
                    await cur.execute(f"SET LOCAL statement_timeout = {int(timeout_ms)}")
                    await cur.execute(sql)
                    if cur.description is None:
                        return []
                    return await cur.fetchall()
