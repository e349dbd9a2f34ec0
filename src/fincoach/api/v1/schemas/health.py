# Health schemas.
# Created: 2026-10-09

from __future__ import annotations

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str = "ok"
    model: str
    api_key_configured: bool
    active_streams: int = 0
    active_tasks: int = 0
