"""
Shared models for entities.

These models are the transient request/response shapes passed between the
classifier, the router, the handlers and the API. Nothing here is persisted.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

MAX_HISTORY_TURNS = 10


class QueryType(str, Enum):
    """The closed set of intents a query can be routed to."""

    SEARCH = "search"
    SQL = "sql"
    DOCUMENT_SEARCH = "document_search"
    GENERAL = "general"


SUGGESTED_ACTIONS: dict[QueryType, str] = {
    QueryType.SEARCH: "Looking up matching cases and contacts...",
    QueryType.SQL: "Querying case database...",
    QueryType.DOCUMENT_SEARCH: "Searching through documents...",
    QueryType.GENERAL: "Analyzing your question...",
}


class HistoryTurn(BaseModel):
    """One prior (query, result) pair in a conversation."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    query: str
    result: Any = None


class QueryContext(BaseModel):
    """
    Carry-over state from the previous turn of a conversation.

    Owned by the caller; the router only reads it.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    previous_query: str | None = None
    previous_result: dict[str, Any] | list[dict[str, Any]] | None = None
    previous_sql: str | None = None
    conversation_history: list[HistoryTurn] = Field(default_factory=list)

    @field_validator("previous_result")
    @classmethod
    def _consistent_records(cls, value):
        if isinstance(value, list) and value:
            keys = set(value[0].keys())
            for row in value[1:]:
                if set(row.keys()) != keys:
                    raise ValueError("previous_result rows must share the same fields")
        return value

    @field_validator("conversation_history")
    @classmethod
    def _bounded_history(cls, value: list[HistoryTurn]) -> list[HistoryTurn]:
        return value[-MAX_HISTORY_TURNS:]

    @property
    def previous_rows(self) -> list[dict[str, Any]]:
        """The previous result as a list of records (empty if absent)."""
        if self.previous_result is None:
            return []
        if isinstance(self.previous_result, dict):
            return [self.previous_result]
        return list(self.previous_result)


class ClassificationResult(BaseModel):
    """Intent verdict for a single query."""

    type: QueryType
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""
    suggested_action: str = ""
    scores: dict[QueryType, float] = Field(default_factory=dict)


class QueryResult(BaseModel):
    """
    Uniform output of every handler.

    ``prompt`` is a self-contained instruction for the narrating LLM.
    When ``error`` is set, ``data`` is None.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: QueryType
    action: str
    data: Any = None
    prompt: str = ""
    sql_query: str | None = None
    error: str | None = None

    @classmethod
    def failure(cls, query_type: QueryType, action: str, error: str) -> "QueryResult":
        return cls(type=query_type, action=action, data=None, prompt="", error=error or "Unknown error")


class GeneratedQuery(BaseModel):
    """SQL produced by the generation step."""

    sql: str
    explanation: str
    estimated_rows: str | None = None
    display_columns: list[str] = Field(default_factory=list)


class ExecutionResult(BaseModel):
    """Wire shape of the read-only execution endpoint."""

    success: bool
    data: list[dict[str, Any]] | None = None
    row_count: int = Field(default=0, ge=0)
    error: str | None = None


class DisplayMessage(BaseModel):
    """A chat-displayable rendering of a QueryResult."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    message: str
    has_table: bool = False
    table_data: list[dict[str, Any]] | None = None
    error: str | None = None


class WarehouseAnswer(BaseModel):
    """Result of a natural-language query against the Snowflake warehouse."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    sql: str
    results: list[dict[str, Any]] = Field(default_factory=list)
    summary: str = ""
    row_count: int = 0
