"""
Narrator - turns handler results into chat-ready text.

The narrator:
1. Formats a QueryResult for display (message plus optional table)
2. Sends the result's self-contained prompt to the LLM for prose
3. Falls back to a markdown table when the LLM is unavailable
"""

import json
import logging
from pathlib import Path
from typing import Any

from lois.entities.llm import LLMClient
from lois.entities.models import DisplayMessage, QueryResult

logger = logging.getLogger(__name__)

NARRATE_MAX_TOKENS = 1024
CONVERSE_MAX_TOKENS = 2048
SAMPLE_ROWS = 10


def load_prompt() -> str:
    """Load the LOIS system prompt from prompt.md in this folder."""
    return (Path(__file__).parent / "prompt.md").read_text(encoding="utf-8")


def _as_rows(data: Any) -> list[dict[str, Any]]:
    if data is None:
        return []
    if isinstance(data, list):
        return [row if isinstance(row, dict) else {"value": row} for row in data]
    if isinstance(data, dict):
        return [data]
    return [{"value": data}]


def format_result_for_display(result: QueryResult) -> DisplayMessage:
    """Render a result for the chat window. Errors never carry a table."""
    if result.error:
        return DisplayMessage(
            message=f"I encountered an error: {result.error}",
            has_table=False,
            error=result.error,
        )

    if result.data is None:
        return DisplayMessage(message=result.prompt, has_table=False)

    return DisplayMessage(
        message=result.action,
        has_table=True,
        table_data=_as_rows(result.data),
    )


def render_table_fallback(result: QueryResult) -> str:
    """Plain markdown rendering used when the LLM cannot narrate."""
    if result.error:
        return f"**Error:** {result.error}"

    rows = _as_rows(result.data)
    lines = [f"**{result.action}** ({len(rows)} rows)\n"]

    if rows:
        columns = list(rows[0].keys())
        lines.append("| " + " | ".join(columns) + " |")
        lines.append("| " + " | ".join(["---"] * len(columns)) + " |")
        for row in rows[:SAMPLE_ROWS]:
            values = [str(row.get(col, "")) for col in columns]
            lines.append("| " + " | ".join(values) + " |")

    if result.sql_query:
        lines.append(f"\n<details><summary>SQL Query</summary>\n\n```sql\n{result.sql_query}\n```\n</details>")

    return "\n".join(lines)


def build_narration_prompt(query: str, data: Any) -> str:
    """Stand-alone narration prompt for a question and its raw results."""
    if isinstance(data, list) and data:
        sample = data[:SAMPLE_ROWS]
        fields = ", ".join(data[0].keys()) if isinstance(data[0], dict) else "value"
        data_context = f"""## Query Results ({len(data)} total rows)

### Sample Data (first {len(sample)} rows):
```json
{json.dumps(sample, indent=2, default=str)}
```

### Available Fields:
{fields}"""
    elif data and not isinstance(data, list):
        data_context = f"""## Query Result:
```json
{json.dumps(data, indent=2, default=str)}
```"""
    else:
        data_context = "## Query Result:\nNo structured data available."

    return f"""You are LOIS, a legal operations intelligence assistant. Analyze the query results and provide a clear, conversational narrative response.

## User's Question:
"{query}"

{data_context}

## Instructions:

1. Answer the question directly, starting with a clear yes/no or direct answer
2. Summarize the most important findings
3. Reference actual case numbers, names, dates and amounts from the data
4. Write naturally, as if explaining to a colleague
5. Keep it to 2-4 paragraphs; use bullet points only when listing several items

Now, generate a response for the user's question based on the provided data."""


class Narrator:
    """
    LLM-backed narration and conversation.

    Usage:
        narrator = Narrator(llm)
        text = await narrator.narrate(result)
        reply = await narrator.converse("What can you do?", history)
    """

    def __init__(self, llm: LLMClient, system_prompt: str | None = None):
        self.llm = llm
        self.system_prompt = system_prompt if system_prompt is not None else load_prompt()

    async def narrate(self, result: QueryResult) -> str:
        """Narrate a handler result. Errors are reported without an LLM call."""
        if result.error:
            return format_result_for_display(result).message

        try:
            text = await self.llm.complete(result.prompt, max_tokens=NARRATE_MAX_TOKENS)
        except Exception as e:
            logger.error("Narration failed, using table fallback: %s", e)
            return render_table_fallback(result)

        return text or render_table_fallback(result)

    async def respond(self, query: str, data: Any) -> str:
        """Narrate raw data for a question. Errors propagate to the caller."""
        return await self.llm.complete(build_narration_prompt(query, data), max_tokens=NARRATE_MAX_TOKENS)

    async def converse(self, query: str, history: list[dict[str, str]] | None = None) -> str:
        """Multi-turn conversational answer. Errors propagate to the caller."""
        logger.info("Processing conversational query: %s (history: %d)", query[:100], len(history or []))
        return await self.llm.complete(
            query,
            system=self.system_prompt,
            history=history or [],
            max_tokens=CONVERSE_MAX_TOKENS,
        )
