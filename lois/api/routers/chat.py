"""
Chat API routes with SSE streaming support.

A chat turn runs through the query router:
1. The classifier picks an intent for the query
2. The matching handler fetches data and builds a narration prompt
3. The narrator turns the result into the assistant's reply
"""

import asyncio
import json
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse

from lois.api.dependencies import get_narrator, get_optional_user_id, get_router
from lois.api.models import (
    ChatRequest,
    ChatResponse,
    ConversationalChatRequest,
    GenerateResponseRequest,
    TextResponse,
)
from lois.entities.chat_agent import Narrator, format_result_for_display
from lois.entities.models import QueryContext, QueryResult
from lois.entities.workflow import QueryRouter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])

CHUNK_SIZE = 50


def _event(payload: dict) -> str:
    return f"data: {json.dumps(payload)}\n\n"


async def generate_streaming_response(
    query_router: QueryRouter,
    narrator: Narrator,
    query: str,
    context: QueryContext | None = None,
) -> AsyncGenerator[str, None]:
    """
    Stream a narrated answer for one query.

    The first event carries the routed intent; narration follows in chunks and
    the final event signals completion.
    """
    try:
        logger.info("Starting chat stream for query: %s", query[:100])

        result: QueryResult = await query_router.route(query, context)
        yield _event({"type": result.type.value, "action": result.action, "done": False})

        text = await narrator.narrate(result)
        if not text:
            text = "No response generated"

        # Stream the output in chunks for better UX
        for i in range(0, len(text), CHUNK_SIZE):
            yield _event({"content": text[i:i + CHUNK_SIZE], "done": False})
            await asyncio.sleep(0.01)

        yield _event({"done": True})

    except Exception as e:
        logger.error("Chat stream error: %s", e, exc_info=True)
        yield _event({"error": str(e), "done": True})


@router.get("/chat/stream")
async def chat_stream(
    query: str = Query(..., min_length=1, description="User query"),
    query_router: QueryRouter = Depends(get_router),
    narrator: Narrator = Depends(get_narrator),
):
    """
    SSE streaming chat.

    Each event is a JSON object: the routed intent first, then ``content``
    chunks, then ``{"done": true}``.
    """
    return StreamingResponse(
        generate_streaming_response(query_router, narrator, query),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.post("/chat/stream")
async def chat_stream_with_context(
    chat_request: ChatRequest,
    query_router: QueryRouter = Depends(get_router),
    narrator: Narrator = Depends(get_narrator),
):
    """SSE streaming chat for follow-ups that carry the previous query and rows."""
    return StreamingResponse(
        generate_streaming_response(query_router, narrator, chat_request.query, chat_request.context),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.post("/chat", response_model=ChatResponse)
async def chat(
    chat_request: ChatRequest,
    query_router: QueryRouter = Depends(get_router),
    narrator: Narrator = Depends(get_narrator),
    user_id: str | None = Depends(get_optional_user_id),
):
    """
    Route a query and return the result, its display form and the narration.

    Handler failures come back inside ``result.error``; they are not HTTP errors.
    """
    logger.info("Chat request from user=%s: %s", user_id, chat_request.query[:100])
    result = await query_router.route(chat_request.query, chat_request.context)

    response = None
    if chat_request.narrate:
        response = await narrator.narrate(result)

    return ChatResponse(result=result, display=format_result_for_display(result), response=response)


@router.post("/generate-response", response_model=TextResponse)
async def generate_response(
    body: GenerateResponseRequest,
    narrator: Narrator = Depends(get_narrator),
):
    """Narrate raw data for a question."""
    try:
        text = await narrator.respond(body.query, body.data)
        return TextResponse(response=text)
    except Exception as e:
        logger.error("Error generating response: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail=str(e)) from e


@router.post("/conversational-chat", response_model=TextResponse)
async def conversational_chat(
    body: ConversationalChatRequest,
    narrator: Narrator = Depends(get_narrator),
):
    """Multi-turn conversational answer without data access."""
    history = [{"role": m.role, "content": m.content} for m in body.conversation_history]
    try:
        text = await narrator.converse(body.query, history)
        return TextResponse(response=text)
    except Exception as e:
        logger.error("Conversational chat error: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail=str(e)) from e
