"""
Shared fakes for the LOIS test suite.

Every external collaborator (LLM, case database, SQL executor, Snowflake) is
replaced by a deterministic in-memory double; no test touches the network.
"""

from typing import Any

import pytest

from lois.entities.models import (
    ClassificationResult,
    ExecutionResult,
    GeneratedQuery,
    QueryContext,
    QueryResult,
    QueryType,
)
from lois.entities.schema_context import SchemaContext


class FakeLLM:
    """Replays canned replies in order. An Exception in the list is raised instead."""

    def __init__(self, *replies: Any):
        self.replies = list(replies)
        self.calls: list[dict[str, Any]] = []

    async def complete(self, prompt, *, system=None, history=None, max_tokens=1024):
        self.calls.append({"prompt": prompt, "system": system, "history": history, "max_tokens": max_tokens})
        if not self.replies:
            raise RuntimeError("FakeLLM has no reply left")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeStore:
    """In-memory CaseStore that records calls. Set ``fail`` to make every call raise."""

    def __init__(self, documents=None, statistics=None, hits=None, fail: Exception | None = None):
        self.documents = documents if documents is not None else []
        self.statistics = statistics if statistics is not None else {
            "total_cases": 3,
            "by_type": {"Personal Injury": 2, "Contract Dispute": 1},
            "by_status": {"Open": 2, "Closed": 1},
        }
        self.hits = hits if hits is not None else []
        self.fail = fail
        self.calls: list[tuple[str, tuple]] = []

    def _record(self, name: str, *args):
        self.calls.append((name, args))
        if self.fail is not None:
            raise self.fail

    def called(self, name: str) -> list[tuple]:
        return [args for call, args in self.calls if call == name]

    async def documents_for_cases(self, case_numbers, limit=50):
        self._record("documents_for_cases", list(case_numbers), limit)
        return self.documents

    async def search_documents(self, terms, limit=20):
        self._record("search_documents", terms, limit)
        return self.documents

    async def documents_with_content(self, case_numbers, limit=20):
        self._record("documents_with_content", list(case_numbers), limit)
        return self.documents

    async def case_statistics(self):
        self._record("case_statistics")
        return self.statistics

    async def lookup(self, term, limit=10):
        self._record("lookup", term, limit)
        return self.hits


class FakeGenerator:
    def __init__(self, generated: GeneratedQuery | None = None, fail: Exception | None = None):
        self.generated = generated or GeneratedQuery(sql="SELECT 1", explanation="Selecting one")
        self.fail = fail
        self.queries: list[str] = []

    async def generate(self, query, context=None):
        self.queries.append(query)
        if self.fail is not None:
            raise self.fail
        return self.generated


class FakeExecutor:
    def __init__(self, result: ExecutionResult | None = None):
        self.result = result or ExecutionResult(success=True, data=[{"n": 1}], row_count=1)
        self.executed: list[str] = []

    async def execute(self, sql):
        self.executed.append(sql)
        return self.result


class FakeReadOnlyDatabase:
    """Stands in for Database.fetch_readonly."""

    def __init__(self, rows=None, fail: Exception | None = None):
        self.rows = rows if rows is not None else []
        self.fail = fail
        self.statements: list[tuple[str, int]] = []

    async def fetch_readonly(self, sql, timeout_ms):
        self.statements.append((sql, timeout_ms))
        if self.fail is not None:
            raise self.fail
        return self.rows


class FakeFetcher:
    """Stands in for Database.fetch_all / fetch_one; rows are picked by SQL substring."""

    def __init__(self, responses: dict[str, list[dict[str, Any]]] | None = None, fail: Exception | None = None):
        self.responses = responses or {}
        self.fail = fail
        self.statements: list[tuple[str, Any]] = []

    async def fetch_all(self, sql, params=None):
        self.statements.append((sql, params))
        if self.fail is not None:
            raise self.fail
        for marker, rows in self.responses.items():
            if marker in sql:
                return rows
        return []

    async def fetch_one(self, sql, params=None):
        rows = await self.fetch_all(sql, params)
        return rows[0] if rows else None


class FakeWarehouse:
    def __init__(self, rows=None, fail: Exception | None = None):
        self.rows = rows if rows is not None else []
        self.fail = fail
        self.executed: list[tuple[str, Any]] = []

    async def execute(self, sql, binds=None):
        self.executed.append((sql, binds))
        if self.fail is not None:
            raise self.fail
        return self.rows


class FixedClassifier:
    def __init__(self, kind: QueryType | None = None, fail: Exception | None = None):
        self.kind = kind
        self.fail = fail

    async def classify(self, query, context=None):
        if self.fail is not None:
            raise self.fail
        return ClassificationResult(type=self.kind, confidence=0.9, reasoning="fixed", suggested_action="...")


class RecordingHandler:
    def __init__(self, kind: QueryType):
        self.kind = kind
        self.calls: list[tuple[str, QueryContext | None]] = []

    async def handle(self, query, context=None):
        self.calls.append((query, context))
        return QueryResult(type=self.kind, action=f"{self.kind.value} handled", data=[], prompt="p")


@pytest.fixture
def schema() -> SchemaContext:
    return SchemaContext(
        version="test_v1",
        dialect="postgresql",
        text="Table projects(id, case_number, title, status, case_type)",
    )


@pytest.fixture
def case_context() -> QueryContext:
    return QueryContext(
        previous_query="Show me open Personal Injury cases",
        previous_result=[
            {"case_number": "CV-2025-00001", "title": "Smith v. Jones"},
            {"case_number": "CV-2025-00002", "title": "Doe v. Acme"},
        ],
        previous_sql="SELECT case_number, title FROM projects WHERE status = 'Open'",
    )
