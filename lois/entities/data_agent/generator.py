"""
Natural-language to SQL generation.

The generator:
1. Builds a prompt from the instructions, the schema context and any follow-up context
2. Asks the LLM for a JSON reply with ``sql`` and ``explanation``
3. Strips code fences from the SQL and checks it is read-only
"""

import json
import logging
from pathlib import Path

from lois.entities.data_agent.tools.sql import strip_code_fences, validate_readonly_sql
from lois.entities.errors import GenerationError, UnsafeSQLError
from lois.entities.llm import LLMClient, parse_json_reply
from lois.entities.models import GeneratedQuery, QueryContext
from lois.entities.schema_context import SchemaContext

logger = logging.getLogger(__name__)

GENERATE_MAX_TOKENS = 2048


def load_prompt() -> str:
    """Load the generation instructions from prompt.md in this folder."""
    return (Path(__file__).parent / "prompt.md").read_text(encoding="utf-8")


def build_context_block(context: QueryContext | None) -> str:
    """Describe the previous turn so follow-ups like "these cases" resolve."""
    if not context or not context.previous_query:
        return ""

    block = f'## Conversation Context\n\n**Previous query**: "{context.previous_query}"\n'
    if context.previous_sql:
        block += f"**Previous SQL**:\n```sql\n{context.previous_sql}\n```\n"

    rows = context.previous_rows
    if rows:
        sample = json.dumps(rows[:2], indent=2, default=str)
        first_case = rows[0].get("case_number") or "the first result"
        block += (
            f"\n**Previous result**: Returned {len(rows)} rows\n\n"
            f"**Sample of previous results** (first 2 rows):\n```json\n{sample}\n```\n\n"
            f"The user is now asking a FOLLOW-UP question that may reference these {len(rows)} results.\n"
            f'- "these cases" or "those cases" means the {len(rows)} cases from the previous query\n'
            f'- "this case" most likely means case: {first_case}\n'
            "- Use the specific IDs / case numbers from the sample above in your WHERE clause\n"
        )
    else:
        block += (
            "\nThe user is asking a FOLLOW-UP question about the previous query.\n"
            "- Use the previous SQL to understand what data was queried\n"
        )
    return block


class SqlGenerator:
    """
    Turns a question into a validated SELECT statement.

    Usage:
        generator = SqlGenerator(llm, load_schema_context())
        generated = await generator.generate("How many open cases?", context)
    """

    def __init__(self, llm: LLMClient, schema: SchemaContext, instructions: str | None = None):
        self.llm = llm
        self.schema = schema
        self.instructions = instructions if instructions is not None else load_prompt()

    def build_prompt(self, query: str, context: QueryContext | None = None) -> str:
        parts = [
            self.instructions.strip(),
            f"# Database Schema ({self.schema.version})\n\n{self.schema.render()}",
        ]
        context_block = build_context_block(context)
        if context_block:
            parts.append(context_block)
        parts.append(f'User\'s natural language query: "{query}"\n\nRespond ONLY with the JSON object.')
        return "\n\n".join(parts)

    async def generate(self, query: str, context: QueryContext | None = None) -> GeneratedQuery:
        """
        Generate SQL for a question.

        Raises:
            GenerationError: if the LLM fails, the reply is malformed, or the
                SQL is not read-only (UnsafeSQLError).
        """
        logger.info("Generating SQL for query: %s", query[:100])
        try:
            reply = await self.llm.complete(self.build_prompt(query, context), max_tokens=GENERATE_MAX_TOKENS)
        except Exception as e:
            raise GenerationError(f"SQL generation call failed: {e}") from e

        try:
            payload = parse_json_reply(reply)
        except ValueError as e:
            raise GenerationError(str(e)) from e

        sql = payload.get("sql")
        explanation = payload.get("explanation")
        if not isinstance(sql, str) or not sql.strip():
            raise GenerationError("Generated SQL is missing or invalid")

        try:
            cleaned = validate_readonly_sql(strip_code_fences(sql))
        except UnsafeSQLError:
            logger.warning("Generated SQL rejected: %s", sql[:200])
            raise

        if not isinstance(explanation, str) or not explanation.strip():
            raise GenerationError("Generated query is missing an explanation")

        estimated = payload.get("estimated_rows")
        columns = payload.get("display_columns")
        logger.info("Generated SQL: %s", cleaned[:200])
        return GeneratedQuery(
            sql=cleaned,
            explanation=explanation.strip(),
            estimated_rows=str(estimated) if estimated is not None else None,
            display_columns=[str(c) for c in columns] if isinstance(columns, list) else [],
        )
