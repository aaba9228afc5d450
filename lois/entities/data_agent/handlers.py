"""
Intent handlers.

Each handler turns (query, context) into a QueryResult and never raises:
failures come back with ``data=None`` and a non-empty ``error``.
"""

import json
import logging
import re
from typing import Any, Protocol

from lois.entities.data_agent.tools.search import CaseStore
from lois.entities.models import (
    ExecutionResult,
    GeneratedQuery,
    QueryContext,
    QueryResult,
    QueryType,
)

logger = logging.getLogger(__name__)

SAMPLE_ROWS = 10
EXCERPT_CHARS = 500

_STOP_PHRASES = re.compile(
    r"\b(search|find|documents?|for|about|containing|with|mentioning|related|these|those|this|that|cases?)\b",
    re.IGNORECASE,
)
_DOCUMENT_WORDS = re.compile(r"document|file|pleading|motion|brief|contract|correspondence", re.IGNORECASE)


class QueryGenerator(Protocol):
    async def generate(self, query: str, context: QueryContext | None = None) -> GeneratedQuery:
        ...


class QueryExecutor(Protocol):
    async def execute(self, sql: str) -> ExecutionResult:
        ...


def extract_case_numbers(previous_result: Any) -> list[str]:
    """
    Distinct case numbers from a previous result, in first-seen order.

    Reads ``case_number`` directly or nested under ``projects``.
    """
    if isinstance(previous_result, dict):
        rows = [previous_result]
    elif isinstance(previous_result, list):
        rows = previous_result
    else:
        return []

    seen: list[str] = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        case_number = row.get("case_number")
        if not case_number and isinstance(row.get("projects"), dict):
            case_number = row["projects"].get("case_number")
        if not case_number:
            continue
        case_number = str(case_number)
        if case_number not in seen:
            seen.append(case_number)
    return seen


def derive_search_terms(query: str) -> str:
    """Strip command words and anaphora, leaving the terms to search for."""
    terms = _STOP_PHRASES.sub(" ", query.lower())
    return " ".join(terms.split())


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def _case_of(doc: dict[str, Any]) -> str:
    project = doc.get("projects")
    if isinstance(project, dict):
        return project.get("case_number") or "Unknown"
    return doc.get("case_number") or "Unknown"


class SQLHandler:
    """Generate, validate and execute SQL for structured questions."""

    def __init__(self, generator: QueryGenerator, executor: QueryExecutor):
        self.generator = generator
        self.executor = executor

    async def handle(self, query: str, context: QueryContext | None = None) -> QueryResult:
        try:
            generated = await self.generator.generate(query, context)
            execution = await self.executor.execute(generated.sql)
            if not execution.success:
                raise RuntimeError(execution.error or "Query execution failed")
        except Exception as e:
            logger.error("SQL handler error: %s", e, exc_info=True)
            return QueryResult.failure(QueryType.SQL, "Database query encountered an error", str(e))

        rows = execution.data or []
        return QueryResult(
            type=QueryType.SQL,
            action=generated.explanation,
            data=rows,
            prompt=self._build_prompt(query, generated.sql, rows),
            sql_query=generated.sql,
        )

    def _build_prompt(self, query: str, sql: str, rows: list[dict[str, Any]]) -> str:
        data_preview = json.dumps(rows[:SAMPLE_ROWS], indent=2, default=str)
        return f"""You are LOIS, a legal operations intelligence assistant.

User query: "{query}"

**SQL Query Used:**
```sql
{sql}
```

**Query Results Summary:**
- Total rows returned: {len(rows)}

**Data (sample of up to {SAMPLE_ROWS} rows):**
```json
{data_preview}
```

Answer the user's question directly from this data. Use a markdown table when listing several records,
cite case numbers and names exactly as shown, and if the data is empty explain that no matching records were found."""


class DocumentSearchHandler:
    """Full-text document search, optionally scoped to cases from the previous turn."""

    def __init__(self, store: CaseStore):
        self.store = store

    async def handle(self, query: str, context: QueryContext | None = None) -> QueryResult:
        case_numbers = extract_case_numbers(context.previous_result) if context else []
        try:
            if case_numbers:
                return await self._scoped(query, case_numbers)
            return await self._free_text(query)
        except Exception as e:
            logger.error("Document search error: %s", e, exc_info=True)
            return QueryResult.failure(QueryType.DOCUMENT_SEARCH, "Document search encountered an error", str(e))

    async def _scoped(self, query: str, case_numbers: list[str]) -> QueryResult:
        logger.info("Filtering documents by previous cases: %s", case_numbers)
        docs = await self.store.documents_for_cases(case_numbers, limit=50)
        in_list = ", ".join(f"'{cn}'" for cn in case_numbers)
        return QueryResult(
            type=QueryType.DOCUMENT_SEARCH,
            action=f"Finding documents for {_plural(len(case_numbers), 'case')} from previous result",
            data=docs,
            prompt=self._build_prompt(
                query,
                docs,
                f"Found {_plural(len(docs), 'document')} across {_plural(len(case_numbers), 'case')}.",
            ),
            sql_query=(
                "SELECT d.title, d.document_type, p.case_number FROM documents d "
                f"JOIN projects p ON d.project_id = p.id WHERE p.case_number IN ({in_list})"
            ),
        )

    async def _free_text(self, query: str) -> QueryResult:
        terms = derive_search_terms(query)
        if not terms:
            return QueryResult.failure(
                QueryType.DOCUMENT_SEARCH,
                "Document search needs search terms",
                "No search terms left after removing command words; please say what to search for.",
            )

        docs = await self.store.search_documents(terms, limit=20)
        summary = f'Found {_plural(len(docs), "document")} matching "{terms}".'
        if not docs:
            summary += " Suggest two or three alternative search terms the user could try."
        return QueryResult(
            type=QueryType.DOCUMENT_SEARCH,
            action=f'Searching documents for "{terms}"',
            data=docs,
            prompt=self._build_prompt(query, docs, summary),
            sql_query=(
                "SELECT title, document_type FROM documents WHERE to_tsvector('english', content) "
                f"@@ websearch_to_tsquery('english', '{terms}')"
            ),
        )

    def _build_prompt(self, query: str, docs: list[dict[str, Any]], summary: str) -> str:
        listing = "\n".join(
            f"- {d.get('title')} | {d.get('document_type')} | {_case_of(d)} | {d.get('date_filed') or 'Unknown'}"
            for d in docs
        )
        return f"""You are LOIS, a legal operations intelligence assistant.

User query: "{query}"

{summary}

Documents (title | type | case | filed):
{listing or '(none)'}

Present the documents as a markdown table with columns Title, Type, Case and Date Filed."""


class GeneralHandler:
    """Conversational answers grounded in case documents or dataset statistics."""

    def __init__(self, store: CaseStore):
        self.store = store

    async def handle(self, query: str, context: QueryContext | None = None) -> QueryResult:
        try:
            if _DOCUMENT_WORDS.search(query) and context:
                case_numbers = extract_case_numbers(context.previous_result)
                if case_numbers:
                    docs = await self.store.documents_with_content(case_numbers, limit=20)
                    if docs:
                        return self._documents_result(query, case_numbers, docs)

            stats = await self.store.case_statistics()
        except Exception as e:
            logger.error("General handler error: %s", e, exc_info=True)
            return QueryResult.failure(QueryType.GENERAL, "Processing question", str(e))

        return QueryResult(
            type=QueryType.GENERAL,
            action="Analyzing your question",
            data=stats,
            prompt=self._statistics_prompt(query, stats),
        )

    def _documents_result(self, query: str, case_numbers: list[str], docs: list[dict[str, Any]]) -> QueryResult:
        entries = []
        for idx, doc in enumerate(docs, start=1):
            excerpt = (doc.get("content") or "No content")[:EXCERPT_CHARS]
            entries.append(
                f"{idx}. **{doc.get('title')}** ({doc.get('document_type')})\n"
                f"   - Case: {_case_of(doc)}\n"
                f"   - Filed: {doc.get('date_filed') or 'Unknown'}\n"
                f"   - Content: {excerpt}..."
            )
        listing = "\n".join(entries)
        prompt = f"""You are LOIS, a legal operations intelligence assistant.

User query: "{query}"

Data source: Document database for case(s): {', '.join(case_numbers)}

Documents retrieved ({len(docs)}):
{listing}

Analyze and respond to the user's request based on these documents. Cite document titles and case numbers."""
        return QueryResult(
            type=QueryType.GENERAL,
            action=f"Analyzing {len(docs)} documents for {_plural(len(case_numbers), 'case')}",
            data=docs,
            prompt=prompt,
        )

    def _statistics_prompt(self, query: str, stats: dict[str, Any]) -> str:
        by_type = "\n".join(f"  - {k}: {v}" for k, v in stats.get("by_type", {}).items())
        by_status = "\n".join(f"  - {k}: {v}" for k, v in stats.get("by_status", {}).items())
        return f"""You are LOIS, a legal operations intelligence assistant.

User query: "{query}"

Dataset overview:
- Total cases: {stats.get('total_cases', 0)}
- Cases by type:
{by_type or '  - (none)'}
- Cases by status:
{by_status or '  - (none)'}

Available data types: cases, contacts, documents, calendar entries, time entries, expenses, invoices, tasks, notes.

Answer the question directly if these figures allow it, citing the concrete numbers.
Otherwise suggest two or three specific questions the user could ask, such as
"How many open Personal Injury cases are there?"."""


class LookupHandler:
    """Direct lookup of cases and contacts by name or case number."""

    def __init__(self, store: CaseStore):
        self.store = store

    async def handle(self, query: str, context: QueryContext | None = None) -> QueryResult:
        term = query.strip().strip("?.!").strip()
        if not term:
            return QueryResult.failure(QueryType.SEARCH, "Lookup needs a name or case number", "Nothing to look up")
        try:
            hits = await self.store.lookup(term, limit=10)
        except Exception as e:
            logger.error("Lookup error: %s", e, exc_info=True)
            return QueryResult.failure(QueryType.SEARCH, "Lookup encountered an error", str(e))

        preview = json.dumps(hits, indent=2, default=str)
        return QueryResult(
            type=QueryType.SEARCH,
            action=f'Looking up "{term}"',
            data=hits,
            prompt=f"""You are LOIS, a legal operations intelligence assistant. The user searched for: "{term}"

Database matches ({len(hits)}):
```json
{preview}
```

Rank the matches by relevance to the search, give a one-line reason for each, and present them as a short list.
If there are no matches, say so and suggest checking the spelling or searching by case number.""",
            sql_query=f"projects/contacts ILIKE '%{term}%'",
        )
