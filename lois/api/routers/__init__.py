"""
API routers package.
"""

from lois.api.routers.chat import router as chat_router
from lois.api.routers.query import router as query_router
from lois.api.routers.sessions import router as sessions_router
from lois.api.routers.snowflake import router as snowflake_router

__all__ = ["chat_router", "query_router", "sessions_router", "snowflake_router"]
