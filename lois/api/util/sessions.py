"""
Chat session persistence in the ``chat_sessions`` table.
"""

from __future__ import annotations

import logging
from typing import Any

from psycopg.types.json import Jsonb

from lois.entities.data_agent.tools.sql import to_json_safe
from lois.entities.database import Database

logger = logging.getLogger(__name__)

# Columns that may be changed through update(); maps request field -> column
UPDATABLE_COLUMNS = {
    "title": "title",
    "messages": "messages",
    "is_archived": "is_archived",
    "project_id": "project_id",
}


def _row(row: dict[str, Any] | None) -> dict[str, Any] | None:
    if row is None:
        return None
    return {k: to_json_safe(v) for k, v in row.items()}


class ChatSessionRepository:
    """CRUD over saved conversations."""

    def __init__(self, database: Database):
        self.database = database

    async def list(self, limit: int = 50, offset: int = 0, include_archived: bool = False) -> list[dict[str, Any]]:
        """Sessions, most recently active first."""
        where = "" if include_archived else "WHERE is_archived = false"
        rows = await self.database.fetch_all(
            f"""
            SELECT id, title, created_at, updated_at, last_message_at, is_archived,
                   jsonb_array_length(messages) AS message_count
            FROM chat_sessions
            {where}
            ORDER BY last_message_at DESC
            LIMIT %s OFFSET %s
            """,
            (limit, offset),
        )
        return [_row(r) for r in rows]

    async def get(self, session_id: str) -> dict[str, Any] | None:
        return _row(await self.database.fetch_one("SELECT * FROM chat_sessions WHERE id = %s", (session_id,)))

    async def create(
        self,
        title: str,
        messages: list[dict[str, Any]],
        project_id: str | None = None,
        user_id: str | None = None,
    ) -> dict[str, Any]:
        row = await self.database.fetch_one(
            """
            INSERT INTO chat_sessions (title, messages, project_id, user_id, last_message_at)
            VALUES (%s, %s, %s, %s, NOW())
            RETURNING *
            """,
            (title, Jsonb(messages), project_id, user_id),
        )
        logger.info("Created chat session %s", row["id"] if row else None)
        return _row(row)

    async def update(self, session_id: str, fields: dict[str, Any]) -> dict[str, Any] | None:
        """
        Update only the given fields. Changing messages bumps last_message_at.

        Raises ValueError if no updatable field is given.
        """
        assignments = []
        values: list[Any] = []
        for name, value in fields.items():
            column = UPDATABLE_COLUMNS.get(name)
            if column is None:
                continue
            assignments.append(f"{column} = %s")
            values.append(Jsonb(value) if name == "messages" else value)
            if name == "messages":
                assignments.append("last_message_at = NOW()")

        if not assignments:
            raise ValueError("No fields to update")

        assignments.append("updated_at = NOW()")
        values.append(session_id)
        row = await self.database.fetch_one(
            f"UPDATE chat_sessions SET {', '.join(assignments)} WHERE id = %s RETURNING *",
            tuple(values),
        )
        return _row(row)

    async def delete(self, session_id: str) -> bool:
        row = await self.database.fetch_one("DELETE FROM chat_sessions WHERE id = %s RETURNING id", (session_id,))
        return row is not None
