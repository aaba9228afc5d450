"""
Read-only SQL checks and execution against the LOIS Postgres database.
"""

import datetime
import decimal
import logging
import re
import uuid
from typing import Any, Protocol

from lois.entities.errors import UnsafeSQLError
from lois.entities.models import ExecutionResult

logger = logging.getLogger(__name__)

# Substring match, so "created_at" or a literal containing "update" is rejected too.
# Read-only access at the database role level is the real boundary.
DENYLIST = ("DROP", "DELETE", "INSERT", "UPDATE", "TRUNCATE", "ALTER", "CREATE", "GRANT", "REVOKE")

_SQL_FENCE = re.compile(r"```(?:sql)?\s*([\s\S]*?)\s*```", re.IGNORECASE)


class ReadOnlyDatabase(Protocol):
    async def fetch_readonly(self, sql: str, timeout_ms: int) -> list[dict[str, Any]]:
        ...


def strip_code_fences(text: str) -> str:
    """Extract SQL from a ```sql / ``` block, if the model wrapped it in one."""
    text = (text or "").strip()
    match = _SQL_FENCE.search(text)
    if match:
        return match.group(1).strip()
    if text.startswith("```"):
        text = re.sub(r"^```[^\n]*\n?", "", text, count=1)
        text = re.sub(r"```\s*$", "", text)
    return text.strip()


def validate_readonly_sql(sql: str, allow_cte: bool = False) -> str:
    """
    Check that a statement is a single read-only query.

    Returns the trimmed SQL.

    The denylist is checked first so a mutating statement is reported by the
    keyword it uses.

    Raises:
        UnsafeSQLError: if it contains a denylisted keyword or does not start
            with SELECT (or WITH, when allow_cte is set).
    """
    cleaned = (sql or "").strip()
    sql_upper = cleaned.upper()

    for keyword in DENYLIST:
        if keyword in sql_upper:
            raise UnsafeSQLError(f"Query contains forbidden keyword: {keyword}", keyword=keyword)

    allowed = ("SELECT", "WITH") if allow_cte else ("SELECT",)
    if not sql_upper.startswith(allowed):
        raise UnsafeSQLError("Only SELECT queries are allowed. Query must start with SELECT.")

    return cleaned


def to_json_safe(value: Any) -> Any:
    """Convert driver values into JSON-serializable ones."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, decimal.Decimal):
        return float(value)
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, dict):
        return {k: to_json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_safe(v) for v in value]
    return str(value)


class SqlExecutor:
    """
    Executes validated SELECT statements in a read-only transaction.

    Re-validates every statement itself and never raises: failures come back
    as ``ExecutionResult(success=False)``.
    """

    def __init__(self, database: ReadOnlyDatabase, statement_timeout_ms: int = 30000):
        self.database = database
        self.statement_timeout_ms = statement_timeout_ms

    async def execute(self, sql: str) -> ExecutionResult:
        logger.info("Executing SQL query: %s", (sql or "")[:200])

        try:
            cleaned = validate_readonly_sql(strip_code_fences(sql))
        except UnsafeSQLError as e:
            logger.warning("Rejected SQL: %s", e)
            return ExecutionResult(success=False, error=str(e))

        try:
            raw_rows = await self.database.fetch_readonly(cleaned, self.statement_timeout_ms)
        except Exception as e:
            logger.error("SQL execution error: %s", e, exc_info=True)
            return ExecutionResult(success=False, error=str(e) or "Query execution failed")

        rows = [{col: to_json_safe(val) for col, val in row.items()} for row in raw_rows]
        logger.info("Query executed successfully. Returned %d rows.", len(rows))
        return ExecutionResult(success=True, data=rows, row_count=len(rows))
