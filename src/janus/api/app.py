"""Calendar REST API: FastAPI application factory.

The app factory creates a FastAPI instance with:
- CORS middleware (configurable origins)
- a lifespan handler owning the shared upstream ``httpx.AsyncClient``
- the health endpoint at ``GET /api/health``
- calendar and event routers under ``/api/v1``
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from janus import __version__
from janus.api.middleware import register_error_handlers
from janus.api.models import HealthResponse
from janus.api.routers.calendars import router as calendars_router
from janus.api.routers.events import router as events_router
from janus.auth import HeaderSessionResolver, SessionResolver, TokenSource
from janus.calendar.http import DEFAULT_TIMEOUT_S
from janus.config import JanusConfig

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create a shared upstream client unless one was injected."""
    owned_client: httpx.AsyncClient | None = None
    if app.state.http_client is None:
        owned_client = httpx.AsyncClient(timeout=DEFAULT_TIMEOUT_S)
        app.state.http_client = owned_client
        logger.info("Created shared upstream HTTP client")

    yield

    if owned_client is not None:
        await owned_client.aclose()
        app.state.http_client = None


def create_app(
    config: JanusConfig,
    *,
    token_source: TokenSource,
    session_resolver: SessionResolver | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    config:
        Loaded service configuration.
    token_source:
        Supplies upstream bearer tokens per (provider, user).
    session_resolver:
        Resolves the calling user. Defaults to a ``HeaderSessionResolver``
        that falls back to ``auth.dev_user_id`` when configured.
    http_client:
        Upstream client shared by all adapters. When omitted, the lifespan
        handler creates one; without a running lifespan each adapter opens
        and closes its own.
    """
    app = FastAPI(
        title="Janus Calendar API",
        version=__version__,
        lifespan=lifespan,
    )
    app.router.redirect_slashes = False

    app.state.config = config
    app.state.token_source = token_source
    app.state.session_resolver = session_resolver or HeaderSessionResolver(
        fallback_user_id=config.auth.dev_user_id
    )
    app.state.http_client = http_client

    if config.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    register_error_handlers(app)

    app.include_router(calendars_router)
    app.include_router(events_router)

    @app.get("/api/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse()

    return app
