"""
Query workflow: classification and dispatch.
"""

from .builder import build_query_router
from .router import QueryRouter

__all__ = ["QueryRouter", "build_query_router"]
