"""
Pydantic models for API request/response schemas.

Request and response bodies use camelCase on the wire to match the web client.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from lois.entities.models import DisplayMessage, QueryContext, QueryResult, QueryType


class CamelModel(BaseModel):
    """Base for wire models: camelCase aliases, snake_case attributes."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatRequest(CamelModel):
    """Request body for the routed chat endpoint."""
    query: str = Field(min_length=1)
    context: QueryContext | None = None
    narrate: bool = True


class ChatResponse(CamelModel):
    """Routed result, its display rendering and the optional narration."""
    result: QueryResult
    display: DisplayMessage
    response: str | None = None


class QueryRequest(CamelModel):
    """A query with optional conversation context."""
    query: str = Field(min_length=1)
    context: QueryContext | None = None


class ClassifyResponse(CamelModel):
    success: bool = True
    type: QueryType
    confidence: float
    reasoning: str
    suggested_action: str


class GenerateQueryResponse(CamelModel):
    success: bool = True
    sql: str
    explanation: str
    estimated_rows: str | None = None
    display_columns: list[str] = Field(default_factory=list)


class ExecuteQueryRequest(CamelModel):
    sql: str = Field(min_length=1)


class ExecuteQueryResponse(CamelModel):
    success: bool = True
    data: list[dict[str, Any]]
    row_count: int


class SearchResponse(CamelModel):
    """Direct lookup matches for a name or case number."""
    success: bool = True
    query: str
    results: list[dict[str, Any]]
    total_results: int


class GenerateResponseRequest(CamelModel):
    """Question plus the raw data to narrate."""
    query: str = Field(min_length=1)
    data: Any = None


class ConversationMessage(CamelModel):
    """Individual message in a conversation."""
    role: str
    content: str


class ConversationalChatRequest(CamelModel):
    query: str = Field(min_length=1)
    conversation_history: list[ConversationMessage] = Field(default_factory=list)


class TextResponse(CamelModel):
    success: bool = True
    response: str


class CreateSessionRequest(CamelModel):
    """Request body for creating a chat session."""
    title: str = Field(min_length=1)
    messages: list[dict[str, Any]] = Field(default_factory=list)
    project_id: str | None = None
    user_id: str | None = None


class UpdateSessionRequest(CamelModel):
    """Request body for updating a chat session. Omitted fields are left unchanged."""
    title: str | None = None
    messages: list[dict[str, Any]] | None = None
    is_archived: bool | None = None
    project_id: str | None = None


class SnowflakeQueryRequest(CamelModel):
    """Raw read-only Snowflake SQL with optional bind values."""
    query: str = Field(min_length=1)
    binds: list[Any] | dict[str, Any] | None = None


class NLQueryRequest(CamelModel):
    question: str = Field(min_length=1)
    org_id: int | None = None
