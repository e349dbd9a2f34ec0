# Chat schemas.
# Created: 2026-10-09

from __future__ import annotations

from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    """Send a message for processing."""

    content: str = Field(..., min_length=1, max_length=100000)
    session_id: str | None = None


class ChatResponse(BaseModel):
    """Complete (non-streaming) chat response."""

    session_id: str
    content: str
    outcome: str
    error: str | None = None
