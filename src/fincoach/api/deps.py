# Shared FastAPI dependencies for the API layer.
# Created: 2026-10-09

from __future__ import annotations

from fastapi import HTTPException, Request

from fincoach.services import Services


def get_services(request: Request) -> Services:
    """Return the ``Services`` the app was built with."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Services not initialized")
    return services
