"""
Chat session management API routes.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query

from lois.api.dependencies import get_optional_user_id, get_sessions
from lois.api.models import CreateSessionRequest, UpdateSessionRequest
from lois.api.util import ChatSessionRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat-sessions", tags=["chat-sessions"])


@router.get("")
async def list_sessions(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    include_archived: bool = Query(False, alias="includeArchived"),
    sessions: ChatSessionRepository = Depends(get_sessions),
):
    """
    List chat sessions, most recently active first.
    """
    try:
        rows = await sessions.list(limit=limit, offset=offset, include_archived=include_archived)
        return {"success": True, "sessions": rows}
    except Exception as e:
        logger.error("Error fetching chat sessions: %s", e)
        raise HTTPException(status_code=500, detail=str(e)) from e


@router.post("")
async def create_session(
    body: CreateSessionRequest,
    sessions: ChatSessionRepository = Depends(get_sessions),
    user_id: str | None = Depends(get_optional_user_id),
):
    """
    Create a chat session. The authenticated user owns it when no user is given.
    """
    try:
        row = await sessions.create(
            title=body.title,
            messages=body.messages,
            project_id=body.project_id,
            user_id=body.user_id or user_id,
        )
        return {"success": True, "session": row}
    except Exception as e:
        logger.error("Error creating chat session: %s", e)
        raise HTTPException(status_code=500, detail=str(e)) from e


@router.get("/{session_id}")
async def get_session(
    session_id: UUID,
    sessions: ChatSessionRepository = Depends(get_sessions),
):
    """
    Get a chat session with its messages.
    """
    try:
        row = await sessions.get(str(session_id))
    except Exception as e:
        logger.error("Error fetching chat session %s: %s", session_id, e)
        raise HTTPException(status_code=500, detail=str(e)) from e

    if row is None:
        raise HTTPException(status_code=404, detail="Chat session not found")
    return {"success": True, "session": row}


@router.put("/{session_id}")
async def update_session(
    session_id: UUID,
    body: UpdateSessionRequest,
    sessions: ChatSessionRepository = Depends(get_sessions),
):
    """
    Update title, messages, archive flag or project. Omitted fields are unchanged.
    """
    fields = body.model_dump(exclude_unset=True)
    if not fields:
        raise HTTPException(status_code=400, detail="No fields to update")

    try:
        row = await sessions.update(str(session_id), fields)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except Exception as e:
        logger.error("Error updating chat session %s: %s", session_id, e)
        raise HTTPException(status_code=500, detail=str(e)) from e

    if row is None:
        raise HTTPException(status_code=404, detail="Chat session not found")
    return {"success": True, "session": row}


@router.delete("/{session_id}")
async def delete_session(
    session_id: UUID,
    sessions: ChatSessionRepository = Depends(get_sessions),
):
    """
    Delete a chat session.
    """
    try:
        deleted = await sessions.delete(str(session_id))
    except Exception as e:
        logger.error("Error deleting chat session %s: %s", session_id, e)
        raise HTTPException(status_code=500, detail=str(e)) from e

    if not deleted:
        raise HTTPException(status_code=404, detail="Chat session not found")
    return {"success": True}
