"""
API utilities.
"""

from .sessions import ChatSessionRepository

__all__ = ["ChatSessionRepository"]
