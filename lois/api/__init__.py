"""
API package for the LOIS FastAPI server.

Contains:
- main.py: FastAPI application with lifespan management
- auth.py: Supabase JWT authentication middleware
- models.py: Pydantic models for API requests/responses
- dependencies.py: FastAPI dependencies
- routers/: Route handlers for chat, query stages, chat sessions and Snowflake
- util/: Utility modules (chat session store)
"""

from lois.api.main import app

__all__ = ["app"]
