"""
Snowflake warehouse access for the DATABRIDGE views.
"""

import asyncio
import logging
import re
from typing import Any

import snowflake.connector
from snowflake.connector import DictCursor

from lois.entities.data_agent.tools.sql import to_json_safe
from lois.entities.errors import WarehouseError
from lois.settings import SnowflakeSettings

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class SnowflakeWarehouse:
    """
    Thin async wrapper over snowflake-connector-python.

    Each call opens its own connection in a worker thread and closes it when done.
    Authenticates with a password or, when a private key path is set, key-pair JWT.
    """

    def __init__(self, settings: SnowflakeSettings):
        if not settings.configured:
            raise ValueError("SNOWFLAKE_ACCOUNT, SNOWFLAKE_USER and a password or private key are required")
        self.settings = settings

    @property
    def database(self) -> str:
        return self.settings.SNOWFLAKE_DATABASE

    @property
    def schema(self) -> str:
        return self.settings.SNOWFLAKE_SCHEMA

    def _connect_args(self) -> dict[str, Any]:
        s = self.settings
        args: dict[str, Any] = {
            "account": s.SNOWFLAKE_ACCOUNT,
            "user": s.SNOWFLAKE_USER,
            "database": s.SNOWFLAKE_DATABASE,
            "schema": s.SNOWFLAKE_SCHEMA,
        }
        if s.SNOWFLAKE_WAREHOUSE:
            args["warehouse"] = s.SNOWFLAKE_WAREHOUSE
        if s.SNOWFLAKE_ROLE:
            args["role"] = s.SNOWFLAKE_ROLE

        if s.SNOWFLAKE_PRIVATE_KEY_PATH:
            args["authenticator"] = "SNOWFLAKE_JWT"
            args["private_key_file"] = s.SNOWFLAKE_PRIVATE_KEY_PATH
            if s.SNOWFLAKE_PRIVATE_KEY_PASSPHRASE:
                args["private_key_file_pwd"] = s.SNOWFLAKE_PRIVATE_KEY_PASSPHRASE
        else:
            args["password"] = s.SNOWFLAKE_PASSWORD
        return args

    def _execute_sync(self, sql: str, binds: tuple | dict | None) -> list[dict[str, Any]]:
        conn = snowflake.connector.connect(**self._connect_args())
        try:
            cur = conn.cursor(DictCursor)
            try:
                cur.execute(sql, binds)
                rows = cur.fetchall()
            finally:
                cur.close()
        finally:
            conn.close()
        return [{k: to_json_safe(v) for k, v in row.items()} for row in rows]

    async def execute(self, sql: str, binds: tuple | dict | None = None) -> list[dict[str, Any]]:
        """
        Run a statement and return dict rows.

        Raises:
            WarehouseError: on connection or execution failure
        """
        logger.info("Executing Snowflake query: %s", sql[:200])
        try:
            rows = await asyncio.to_thread(self._execute_sync, sql, binds)
        except Exception as e:
            logger.error("Snowflake query failed: %s", e, exc_info=True)
            raise WarehouseError(str(e) or "Snowflake query failed") from e
        logger.info("Snowflake query returned %d rows", len(rows))
        return rows

    async def test_connection(self) -> bool:
        try:
            rows = await self.execute("SELECT CURRENT_VERSION() AS VERSION")
        except WarehouseError:
            return False
        return bool(rows)

    async def list_tables(self) -> list[dict[str, str]]:
        """Tables and views in the configured schema."""
        tables = []
        for kind in ("TABLES", "VIEWS"):
            rows = await self.execute(f"SHOW {kind} IN SCHEMA {self.database}.{self.schema}")
            for row in rows:
                tables.append({
                    "name": row.get("name") or row.get("NAME"),
                    "type": row.get("kind") or row.get("KIND") or kind[:-1],
                })
        return tables

    async def describe(self, table: str) -> list[dict[str, Any]]:
        """Columns of one table or view."""
        if not _IDENTIFIER.match(table):
            raise ValueError(f"Invalid table name: {table!r}")
        rows = await self.execute(f"DESCRIBE TABLE {self.database}.{self.schema}.{table}")
        return [
            {
                "name": row.get("name") or row.get("NAME"),
                "type": row.get("type") or row.get("TYPE"),
                "nullable": (row.get("null?") or row.get("NULL?") or row.get("null")) == "Y",
            }
            for row in rows
        ]
