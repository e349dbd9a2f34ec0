# Health router.
# Created: 2026-10-09

from __future__ import annotations

from fastapi import APIRouter, Depends

from fincoach.api.deps import get_services
from fincoach.api.v1.schemas.health import HealthResponse
from fincoach.services import Services

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
async def get_health(services: Services = Depends(get_services)):
    return HealthResponse(
        model=services.chat.model,
        api_key_configured=bool(services.settings.api_key),
        active_streams=len(services.active_streams),
        active_tasks=services.pool.active,
    )
