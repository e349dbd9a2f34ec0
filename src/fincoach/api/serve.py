"""API server for ``fincoach serve``.

Builds a FastAPI app with the ``/api/v1/`` routers. Services are built at
startup unless the caller passes them in (tests do), and closed at shutdown
only when the app built them.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fincoach.services import Services

logger = logging.getLogger(__name__)


def create_api_app(services: Services | None = None):
    """Build the FastAPI application."""
    from fastapi import FastAPI
    from fastapi.middleware.cors import CORSMiddleware

    from fincoach.api.v1 import mount_v1_routers

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = services is None
        if owned:
            from fincoach.services import build_services

            app.state.services = build_services()
        app.state.services.dispatcher.bind(asyncio.get_running_loop())
        try:
            yield
        finally:
            if owned:
                await app.state.services.aclose()

    app = FastAPI(
        title="FinCoach API",
        description="Streaming financial advice and transaction categorization.",
        version="0.1.0",
        docs_url="/api/v1/docs",
        redoc_url="/api/v1/redoc",
        openapi_url="/api/v1/openapi.json",
        lifespan=lifespan,
    )
    if services is not None:
        app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

    mount_v1_routers(app)
    return app


def run_api_server(host: str = "127.0.0.1", port: int = 8765) -> None:
    """Start the API server with uvicorn."""
    import uvicorn

    logger.info("API docs: http://%s:%d/api/v1/docs", host, port)
    uvicorn.run(create_api_app(), host=host, port=port)
