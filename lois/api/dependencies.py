"""
FastAPI dependencies for authentication and shared resources.
"""

import logging
from typing import TYPE_CHECKING

from fastapi import HTTPException, Request

if TYPE_CHECKING:
    from lois.api.util.sessions import ChatSessionRepository
    from lois.entities.chat_agent import Narrator
    from lois.entities.data_agent import SqlGenerator
    from lois.entities.data_agent.tools import SqlExecutor
    from lois.entities.warehouse import SnowflakeWarehouse, WarehouseQueryService
    from lois.entities.workflow import QueryRouter

logger = logging.getLogger(__name__)


def get_user_id(request: Request) -> str:
    """
    Get authenticated user ID from request state.

    Raises HTTPException 401 if not authenticated.
    """
    user_id = getattr(request.state, "user_id", None)
    if not user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user_id


def get_optional_user_id(request: Request) -> str | None:
    """Get user ID from request state, or None if not authenticated."""
    return getattr(request.state, "user_id", None)


def _service(request: Request, name: str, label: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(status_code=503, detail=f"{label} not initialized")
    return service


def get_router(request: Request) -> "QueryRouter":
    """
    Get the query router from app state.

    Raises HTTPException 503 if not initialized.
    """
    return _service(request, "query_router", "Query router")


def get_narrator(request: Request) -> "Narrator":
    return _service(request, "narrator", "Narrator")


def get_generator(request: Request) -> "SqlGenerator":
    return _service(request, "sql_generator", "SQL generator")


def get_executor(request: Request) -> "SqlExecutor":
    return _service(request, "sql_executor", "SQL executor")


def get_sessions(request: Request) -> "ChatSessionRepository":
    return _service(request, "sessions", "Chat session store")


def get_warehouse(request: Request) -> "SnowflakeWarehouse":
    """
    Get the Snowflake warehouse from app state.

    Raises HTTPException 503 if Snowflake is not configured.
    """
    return _service(request, "warehouse", "Snowflake warehouse")


def get_warehouse_service(request: Request) -> "WarehouseQueryService":
    return _service(request, "warehouse_service", "Snowflake query service")
