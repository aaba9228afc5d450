"""
Document full-text search, case statistics and entity lookup against Postgres.
"""

import logging
from typing import Any, Protocol

from lois.entities.data_agent.tools.sql import to_json_safe
from lois.entities.errors import DataAccessError

logger = logging.getLogger(__name__)


class CaseStore(Protocol):
    """Read access the document, general and lookup handlers need."""

    async def documents_for_cases(self, case_numbers: list[str], limit: int = 50) -> list[dict[str, Any]]:
        ...

    async def search_documents(self, terms: str, limit: int = 20) -> list[dict[str, Any]]:
        ...

    async def documents_with_content(self, case_numbers: list[str], limit: int = 20) -> list[dict[str, Any]]:
        ...

    async def case_statistics(self) -> dict[str, Any]:
        ...

    async def lookup(self, term: str, limit: int = 10) -> list[dict[str, Any]]:
        ...


class Fetcher(Protocol):
    async def fetch_all(self, sql: str, params: tuple | dict | None = None) -> list[dict[str, Any]]:
        ...


_DOCUMENTS_FOR_CASES = """
SELECT d.id, d.title, d.document_type, d.date_filed, d.file_size_kb,
       json_build_object('case_number', p.case_number, 'title', p.title) AS projects
FROM documents d
JOIN projects p ON d.project_id = p.id
WHERE p.case_number = ANY(%(case_numbers)s)
ORDER BY d.date_filed DESC NULLS LAST
LIMIT %(limit)s
"""

_DOCUMENTS_WITH_CONTENT = """
SELECT d.id, d.title, d.document_type, d.content, d.date_filed, d.file_size_kb, d.project_id,
       json_build_object('case_number', p.case_number, 'title', p.title) AS projects
FROM documents d
JOIN projects p ON d.project_id = p.id
WHERE p.case_number = ANY(%(case_numbers)s)
ORDER BY d.date_filed DESC NULLS LAST
LIMIT %(limit)s
"""

_SEARCH_DOCUMENTS = """
SELECT d.title, d.document_type, d.date_filed,
       json_build_object('case_number', p.case_number, 'title', p.title) AS projects
FROM documents d
LEFT JOIN projects p ON d.project_id = p.id
WHERE to_tsvector('english', coalesce(d.content, '')) @@ websearch_to_tsquery('english', %(terms)s)
LIMIT %(limit)s
"""

_LOOKUP_CASES = """
SELECT id, case_number, title, description, case_type, status, phase
FROM projects
WHERE case_number ILIKE %(pattern)s OR title ILIKE %(pattern)s OR description ILIKE %(pattern)s
ORDER BY case_number
LIMIT %(limit)s
"""

_LOOKUP_CONTACTS = """
SELECT id, first_name, last_name, contact_type, organization, email, phone
FROM contacts
WHERE first_name ILIKE %(pattern)s
   OR last_name ILIKE %(pattern)s
   OR (first_name || ' ' || last_name) ILIKE %(pattern)s
ORDER BY last_name, first_name
LIMIT %(limit)s
"""


def _safe_rows(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [{k: to_json_safe(v) for k, v in row.items()} for row in rows]


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class PostgresCaseStore:
    """CaseStore backed by the shared Database pool."""

    def __init__(self, database: Fetcher):
        self.database = database

    async def _fetch(self, label: str, sql: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        try:
            rows = await self.database.fetch_all(sql, params)
        except Exception as e:
            logger.error("%s failed: %s", label, e, exc_info=True)
            raise DataAccessError(f"{label} failed: {e}") from e
        return _safe_rows(rows)

    async def documents_for_cases(self, case_numbers: list[str], limit: int = 50) -> list[dict[str, Any]]:
        logger.info("Fetching documents for %d case(s)", len(case_numbers))
        return await self._fetch(
            "Document lookup", _DOCUMENTS_FOR_CASES, {"case_numbers": list(case_numbers), "limit": limit}
        )

    async def documents_with_content(self, case_numbers: list[str], limit: int = 20) -> list[dict[str, Any]]:
        return await self._fetch(
            "Document fetch", _DOCUMENTS_WITH_CONTENT, {"case_numbers": list(case_numbers), "limit": limit}
        )

    async def search_documents(self, terms: str, limit: int = 20) -> list[dict[str, Any]]:
        logger.info("Full-text document search: %s", terms[:100])
        return await self._fetch("Document search", _SEARCH_DOCUMENTS, {"terms": terms, "limit": limit})

    async def case_statistics(self) -> dict[str, Any]:
        by_type = await self._fetch(
            "Case statistics",
            "SELECT case_type, COUNT(*) AS count FROM projects GROUP BY case_type ORDER BY count DESC",
            {},
        )
        by_status = await self._fetch(
            "Case statistics",
            "SELECT status, COUNT(*) AS count FROM projects GROUP BY status ORDER BY count DESC",
            {},
        )
        return {
            "total_cases": sum(int(r["count"]) for r in by_type),
            "by_type": {r["case_type"] or "Unknown": int(r["count"]) for r in by_type},
            "by_status": {r["status"] or "Unknown": int(r["count"]) for r in by_status},
        }

    async def lookup(self, term: str, limit: int = 10) -> list[dict[str, Any]]:
        params = {"pattern": f"%{_escape_like(term.strip())}%", "limit": limit}
        cases = await self._fetch("Case lookup", _LOOKUP_CASES, params)
        contacts = await self._fetch("Contact lookup", _LOOKUP_CONTACTS, params)
        hits = [{"type": "case", "id": c["id"], "data": c} for c in cases]
        hits += [{"type": "contact", "id": c["id"], "data": c} for c in contacts]
        logger.info("Lookup for %r found %d match(es)", term[:100], len(hits))
        return hits
