"""
Step-by-step query routes: classify, generate SQL, execute SQL, direct lookup.

These expose the stages of the chat pipeline individually so the web client
can drive them itself. Failures return ``{"success": false, "error": ...}``.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from lois.api.dependencies import get_executor, get_generator, get_router
from lois.api.models import (
    ClassifyResponse,
    ExecuteQueryRequest,
    ExecuteQueryResponse,
    GenerateQueryResponse,
    QueryRequest,
    SearchResponse,
)
from lois.entities.data_agent import SqlGenerator
from lois.entities.data_agent.tools import SqlExecutor, strip_code_fences, validate_readonly_sql
from lois.entities.errors import UnsafeSQLError
from lois.entities.workflow import QueryRouter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["query"])


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


@router.post("/classify-query", response_model=ClassifyResponse)
async def classify_query(
    body: QueryRequest,
    query_router: QueryRouter = Depends(get_router),
):
    """Classify a query without running it."""
    try:
        result = await query_router.classify(body.query, body.context)
    except Exception as e:
        logger.error("Error classifying query: %s", e, exc_info=True)
        return error_response(500, str(e) or "Failed to classify query")

    logger.info("Classified as: %s (confidence: %.2f)", result.type.value, result.confidence)
    return ClassifyResponse(
        type=result.type,
        confidence=result.confidence,
        reasoning=result.reasoning,
        suggested_action=result.suggested_action,
    )


@router.post("/generate-query", response_model=GenerateQueryResponse)
async def generate_query(
    body: QueryRequest,
    generator: SqlGenerator = Depends(get_generator),
):
    """Generate validated read-only SQL for a question."""
    try:
        generated = await generator.generate(body.query, body.context)
    except Exception as e:
        logger.error("Error generating query: %s", e, exc_info=True)
        return error_response(500, str(e) or "Failed to generate query")

    return GenerateQueryResponse(
        sql=generated.sql,
        explanation=generated.explanation,
        estimated_rows=generated.estimated_rows,
        display_columns=generated.display_columns,
    )


@router.post("/execute-query", response_model=ExecuteQueryResponse)
async def execute_query(
    body: ExecuteQueryRequest,
    executor: SqlExecutor = Depends(get_executor),
):
    """
    Execute a SELECT statement read-only.

    Returns 400 when the statement is rejected, 500 when execution fails.
    """
    try:
        sql = validate_readonly_sql(strip_code_fences(body.sql))
    except UnsafeSQLError as e:
        logger.warning("Rejected SQL: %s", e)
        return error_response(400, str(e))

    result = await executor.execute(sql)
    if not result.success:
        return error_response(500, f"Query execution failed: {result.error}")

    return ExecuteQueryResponse(data=result.data or [], row_count=result.row_count)


@router.post("/search", response_model=SearchResponse)
async def search(
    body: QueryRequest,
    query_router: QueryRouter = Depends(get_router),
):
    """Look up cases and contacts by name or case number, without classifying."""
    if not body.query.strip().strip("?.!").strip():
        return error_response(400, "Query is required")

    result = await query_router.lookup_handler.handle(body.query)
    if result.error:
        return error_response(500, result.error)

    hits = result.data or []
    return SearchResponse(query=body.query, results=hits, total_results=len(hits))
