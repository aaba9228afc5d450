"""
Natural-language questions over the Snowflake DATABRIDGE views.

Steps:
1. Generate plain-text Snowflake SQL from the schema context
2. Treat an ``ERROR:`` reply as a refusal
3. Validate it is read-only (SELECT or WITH)
4. Scope it to one organisation with an ORG_ID filter
5. Execute it
6. Summarise the first rows with the LLM
"""

import json
import logging
import re
from typing import Any, Protocol

from lois.entities.data_agent.tools.sql import strip_code_fences, validate_readonly_sql
from lois.entities.errors import GenerationError
from lois.entities.llm import LLMClient
from lois.entities.models import WarehouseAnswer
from lois.entities.schema_context import SchemaContext

logger = logging.getLogger(__name__)

SQL_MAX_TOKENS = 1024
SUMMARY_MAX_TOKENS = 2048
SUMMARY_ROWS = 10

_VIEW = r"(?:\w+\.\w+\.)?(VW_DATABRIDGE_\w+)"
_CTE = re.compile(r"^\s*WITH\b", re.IGNORECASE)
_CTE_FROM = re.compile(rf"FROM\s+{_VIEW}", re.IGNORECASE)
_TABLE_REF = re.compile(rf"(?:FROM|JOIN)\s+{_VIEW}(?:\s+(?:AS\s+)?(\w+))?", re.IGNORECASE)
_CLAUSE_AFTER_WHERE = re.compile(r"\s+(GROUP\s+BY|HAVING|QUALIFY|ORDER\s+BY|LIMIT)\b", re.IGNORECASE)
_NOT_ALIASES = {
    "ON", "WHERE", "JOIN", "LEFT", "RIGHT", "INNER", "OUTER", "FULL", "CROSS",
    "NATURAL", "USING", "GROUP", "ORDER", "LIMIT", "HAVING", "QUALIFY", "UNION",
}


class Warehouse(Protocol):
    async def execute(self, sql: str, binds: tuple | dict | None = None) -> list[dict[str, Any]]:
        ...


def _coerce_org_id(org_id: Any) -> int:
    if isinstance(org_id, bool):
        raise ValueError(f"org_id must be an integer, got {org_id!r}")
    if isinstance(org_id, int):
        return org_id
    if isinstance(org_id, str) and org_id.strip().isdigit():
        return int(org_id.strip())
    raise ValueError(f"org_id must be an integer, got {org_id!r}")


def _org_predicate(sql: str, org_id: int) -> str:
    if not re.search(r"\bJOIN\b", sql, re.IGNORECASE):
        return f"ORG_ID = {org_id}"
    qualifiers = []
    for view, alias in _TABLE_REF.findall(sql):
        name = alias if alias and alias.upper() not in _NOT_ALIASES else view
        if name not in qualifiers:
            qualifiers.append(name)
    if not qualifiers:
        return f"ORG_ID = {org_id}"
    return " AND ".join(f"{q}.ORG_ID = {org_id}" for q in qualifiers)


def _extend_where(sql: str, predicate: str) -> str:
    match = re.search(r"\bWHERE\b", sql, re.IGNORECASE)
    head, tail = sql[:match.start()], sql[match.end():]
    end = _CLAUSE_AFTER_WHERE.search(tail)
    if end:
        condition, rest = tail[:end.start()], tail[end.start():]
    else:
        condition, rest = tail.rstrip(), ""
        if condition.endswith(";"):
            condition, rest = condition[:-1], ";"
    return f"{head}WHERE {predicate} AND ({condition.strip()}){rest}"


def _insert_where(sql: str, predicate: str) -> str:
    for clause, keyword in ((r"\s+GROUP\s+BY", "GROUP BY"), (r"\s+ORDER\s+BY", "ORDER BY"), (r"\s+LIMIT\s+", "LIMIT ")):
        match = re.search(clause, sql, re.IGNORECASE)
        if match:
            return f"{sql[:match.start()]}\nWHERE {predicate}\n{keyword}{sql[match.end():]}"
    body = sql.strip()
    if body.endswith(";"):
        return f"{body[:-1].rstrip()}\nWHERE {predicate};"
    return f"{body}\nWHERE {predicate}"


def apply_org_filter(sql: str, org_id: Any) -> str:
    """
    Restrict a DATABRIDGE query to one organisation.

    Queries that reference no VW_DATABRIDGE view are returned unchanged.
    ``org_id`` is interpolated into SQL, so it must be an integer.

    Raises:
        ValueError: if org_id is not an integer
    """
    org = _coerce_org_id(org_id)
    if "VW_DATABRIDGE" not in sql.upper():
        logger.info("Skipping ORG_ID filter - no VW_DATABRIDGE views referenced")
        return sql

    if _CTE.match(sql):
        match = _CTE_FROM.search(sql)
        if match:
            rest = sql[match.end():]
            existing = re.match(r"\s+WHERE\b", rest, re.IGNORECASE)
            if existing:
                return f"{sql[:match.end()]}\n  WHERE ORG_ID = {org} AND{rest[existing.end():]}"
            return f"{sql[:match.end()]}\n  WHERE ORG_ID = {org}{rest}"

    predicate = _org_predicate(sql, org)
    if re.search(r"\bWHERE\b", sql, re.IGNORECASE):
        return _extend_where(sql, predicate)
    return _insert_where(sql, predicate)


class WarehouseQueryService:
    """
    Answers questions against Snowflake.

    Usage:
        service = WarehouseQueryService(warehouse, llm, load_schema_context(SNOWFLAKE_SCHEMA_VERSION))
        answer = await service.answer("How many projects are in discovery?", org_id=42)
    """

    def __init__(self, warehouse: Warehouse, llm: LLMClient, schema: SchemaContext, qualifier: str = "TEAM_THC2.DATABRIDGE"):
        self.warehouse = warehouse
        self.llm = llm
        self.schema = schema
        self.qualifier = qualifier

    def _sql_prompt(self, question: str, scoped: bool) -> str:
        org_rule = "\n10. DO NOT add ORG_ID filtering - it will be added automatically" if scoped else ""
        return f"""You are a SQL expert helping users query a Snowflake database.

Given the following database schema:

{self.schema.render()}

User question: "{question}"

Generate a valid Snowflake SQL query to answer this question.

CRITICAL RULES:
1. Only SELECT queries are allowed
2. ALWAYS use LIMIT 100 to prevent large result sets
3. Use fully qualified names: {self.qualifier}.view_name
4. The main view is VW_DATABRIDGE_PROJECT_LIST_DATA_V1
5. For project phase/status, use the PHASE_NAME column (NOT "STATUS")
6. For case numbers, use the PROJECT_NUMBER column
7. For client names, use the CLIENT_FULL_NAME column
8. Return ONLY the SQL query, no explanations, no markdown code blocks
9. If the question cannot be answered, return "ERROR: Cannot generate query"{org_rule}

SQL Query:"""

    def _summary_prompt(self, question: str, sql: str, rows: list[dict[str, Any]]) -> str:
        more = f"\n... and {len(rows) - SUMMARY_ROWS} more rows" if len(rows) > SUMMARY_ROWS else ""
        return f"""You are helping interpret SQL query results for a user.

User's question: "{question}"

SQL query executed:
```sql
{sql}
```

Results ({len(rows)} rows):
```json
{json.dumps(rows[:SUMMARY_ROWS], indent=2, default=str)}{more}
```

Provide a clear, concise answer to the user's question based on these results. Focus on insights and key findings."""

    async def generate_sql(self, question: str, org_id: Any = None) -> str:
        """
        Steps 1-4: generated, validated and org-scoped SQL.

        Raises:
            GenerationError: if the LLM fails or refuses
            UnsafeSQLError: if the SQL is not read-only
            ValueError: if org_id is not an integer
        """
        if org_id is not None:
            org_id = _coerce_org_id(org_id)

        try:
            reply = await self.llm.complete(self._sql_prompt(question, org_id is not None), max_tokens=SQL_MAX_TOKENS)
        except Exception as e:
            raise GenerationError(f"Snowflake SQL generation failed: {e}") from e

        sql = strip_code_fences(reply)
        if sql.startswith("ERROR:"):
            raise GenerationError(sql[len("ERROR:"):].strip() or "Cannot generate query")

        sql = validate_readonly_sql(sql, allow_cte=True)
        logger.info("Generated SQL (before org filter): %s", sql[:200])

        if org_id is not None:
            sql = apply_org_filter(sql, org_id)
            logger.info("Generated SQL (after org filter): %s", sql[:200])
        return sql

    async def answer(self, question: str, org_id: Any = None) -> WarehouseAnswer:
        """
        Answer a question end to end.

        Raises:
            LoisError subclasses on generation, validation or execution failure.
        """
        logger.info("Generating Snowflake SQL for question: %s", question[:100])
        sql = await self.generate_sql(question, org_id)
        rows = await self.warehouse.execute(sql)

        try:
            summary = await self.llm.complete(self._summary_prompt(question, sql, rows), max_tokens=SUMMARY_MAX_TOKENS)
        except Exception as e:
            logger.warning("Summary generation failed: %s", e)
            summary = f"The query returned {len(rows)} rows."

        return WarehouseAnswer(sql=sql, results=rows, summary=summary, row_count=len(rows))

    async def organizations(self) -> list[dict[str, Any]]:
        return await self.warehouse.execute(
            f"""SELECT DISTINCT ORG_ID, ORG_NAME
FROM {self.qualifier}.VW_DATABRIDGE_PROJECT_LIST_DATA_V1
WHERE ORG_ID IS NOT NULL AND ORG_NAME IS NOT NULL
ORDER BY ORG_NAME"""
        )
