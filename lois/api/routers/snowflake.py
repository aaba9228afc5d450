"""
Snowflake warehouse API routes.
"""

import logging

from fastapi import APIRouter, Depends, Query

from lois.api.dependencies import get_warehouse, get_warehouse_service
from lois.api.models import NLQueryRequest, SnowflakeQueryRequest
from lois.api.routers.query import error_response
from lois.entities.data_agent.tools import validate_readonly_sql
from lois.entities.errors import UnsafeSQLError
from lois.entities.warehouse import SnowflakeWarehouse, WarehouseQueryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/snowflake", tags=["snowflake"])


@router.get("/test")
async def test_connection(warehouse: SnowflakeWarehouse = Depends(get_warehouse)):
    """Check connectivity and list the available tables and views."""
    logger.info("Testing Snowflake connection...")
    try:
        if not await warehouse.test_connection():
            return error_response(500, "Failed to connect to Snowflake")
        tables = await warehouse.list_tables()
    except Exception as e:
        logger.error("Snowflake connection test error: %s", e, exc_info=True)
        return error_response(500, str(e) or "Failed to test Snowflake connection")

    return {
        "success": True,
        "connected": True,
        "message": "Successfully connected to Snowflake",
        "tables": tables,
    }


@router.get("/explore")
async def explore(
    kind: str | None = Query(None, alias="type", description="tables or columns"),
    table: str | None = Query(None, description="Table or view name, for type=columns"),
    warehouse: SnowflakeWarehouse = Depends(get_warehouse),
):
    """Browse the configured schema: its tables and views, or one table's columns."""
    if not kind:
        return error_response(400, "Type parameter is required")
    if kind not in ("tables", "columns"):
        return error_response(400, "Invalid type parameter")
    if kind == "columns" and not table:
        return error_response(400, "Table parameter is required")

    try:
        if kind == "tables":
            data = sorted(await warehouse.list_tables(), key=lambda t: t["name"] or "")
        else:
            data = await warehouse.describe(table)
    except ValueError as e:
        return error_response(400, str(e))
    except Exception as e:
        logger.error("Snowflake explore error: %s", e, exc_info=True)
        return error_response(500, str(e) or "Failed to explore Snowflake data")

    return {"success": True, "data": data}


@router.post("/query")
async def run_query(
    body: SnowflakeQueryRequest,
    warehouse: SnowflakeWarehouse = Depends(get_warehouse),
):
    """Execute a read-only statement against the warehouse."""
    try:
        sql = validate_readonly_sql(body.query, allow_cte=True)
    except UnsafeSQLError as e:
        return error_response(400, str(e))

    binds = tuple(body.binds) if isinstance(body.binds, list) else body.binds
    try:
        rows = await warehouse.execute(sql, binds)
    except Exception as e:
        logger.error("Snowflake query error: %s", e, exc_info=True)
        return error_response(500, str(e) or "Failed to execute Snowflake query")

    return {"success": True, "data": rows, "rowCount": len(rows)}


@router.post("/nl-query")
async def nl_query(
    body: NLQueryRequest,
    service: WarehouseQueryService = Depends(get_warehouse_service),
):
    """Answer a natural-language question from the warehouse, scoped to an organization."""
    try:
        answer = await service.answer(body.question, body.org_id)
    except (UnsafeSQLError, ValueError) as e:
        logger.warning("Snowflake question rejected: %s", e)
        return error_response(400, str(e))
    except Exception as e:
        logger.error("Snowflake NL query error: %s", e, exc_info=True)
        return error_response(500, str(e) or "Failed to execute query")

    return {"success": True, **answer.model_dump(mode="json", by_alias=True)}


@router.get("/organizations")
async def organizations(service: WarehouseQueryService = Depends(get_warehouse_service)):
    """Distinct organizations available for scoping."""
    try:
        rows = await service.organizations()
    except Exception as e:
        logger.error("Error fetching organizations: %s", e, exc_info=True)
        return error_response(500, str(e) or "Failed to fetch organizations")

    return {"success": True, "organizations": rows}
