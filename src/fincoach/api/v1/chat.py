# Chat router: send, stream (SSE), stop.
# Created: 2026-10-09
#
# Each session_id maps to one ConversationHistory in Services.conversations.
# The SSE endpoint forwards ChatStream deltas as "chunk" events and closes
# with a "stream_end" event carrying the outcome.

from __future__ import annotations

import json
import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from fincoach.api.deps import get_services
from fincoach.api.v1.schemas.chat import ChatRequest, ChatResponse
from fincoach.errors import ConversationBusyError
from fincoach.llm.streaming import ChatStream
from fincoach.services import Services

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Chat"])


def _sse(event: str, data: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


def _start(services: Services, body: ChatRequest) -> tuple[str, ChatStream]:
    chat_id = body.session_id or f"api:{uuid.uuid4().hex[:12]}"
    history = services.conversations.get_or_create(chat_id)
    try:
        stream = services.chat.send(history, body.content)
    except ConversationBusyError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    services.active_streams[chat_id] = stream
    return chat_id, stream


def _forget(services: Services, chat_id: str, stream: ChatStream) -> None:
    if services.active_streams.get(chat_id) is stream:
        del services.active_streams[chat_id]


@router.post("/chat", response_model=ChatResponse)
async def chat_send(body: ChatRequest, services: Services = Depends(get_services)):
    """Send a message and get the complete response (non-streaming)."""
    chat_id, stream = _start(services, body)
    try:
        outcome = await stream.wait()
    finally:
        stream.cancel()
        _forget(services, chat_id, stream)

    return ChatResponse(
        session_id=chat_id,
        content=stream.text,
        outcome=outcome.value,
        error=stream.error,
    )


@router.post("/chat/stream")
async def chat_stream(body: ChatRequest, services: Services = Depends(get_services)):
    """Send a message and receive an SSE stream back."""
    chat_id, stream = _start(services, body)

    async def _event_generator():
        try:
            yield _sse("stream_start", {"session_id": chat_id})
            async for delta in stream:
                yield _sse("chunk", {"content": delta, "type": "text"})
            outcome = await stream.wait()
            yield _sse(
                "stream_end",
                {"session_id": chat_id, "outcome": outcome.value, "error": stream.error},
            )
        finally:
            # client went away mid-stream
            stream.cancel()
            _forget(services, chat_id, stream)

    return StreamingResponse(
        _event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.post("/chat/stop")
async def chat_stop(session_id: str = "", services: Services = Depends(get_services)):
    """Cancel an in-flight chat response."""
    if not session_id:
        raise HTTPException(status_code=400, detail="session_id is required")

    stream = services.active_streams.get(session_id)
    if stream is None:
        raise HTTPException(status_code=404, detail="No active stream for this session")

    stream.cancel()
    return {"status": "ok", "session_id": session_id}


@router.delete("/chat/{session_id}")
async def chat_reset(session_id: str, services: Services = Depends(get_services)):
    """Forget a session's conversation history."""
    if session_id in services.active_streams:
        raise HTTPException(status_code=409, detail="A response is still streaming")
    if not services.conversations.drop(session_id):
        raise HTTPException(status_code=404, detail="Unknown session")
    return {"status": "ok", "session_id": session_id}
