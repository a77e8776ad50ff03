"""FastAPI application factory."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from urbantrack.api.middleware import setup_middleware
from urbantrack.core.config import Settings
from urbantrack.core.logging import setup_logging
from urbantrack.services.runtime import build_runtime

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = Settings()

    if not settings.is_testing:
        setup_logging(level=settings.log_level, log_format=settings.log_format)

    # Startup aborts here if challenge definitions are invalid
    runtime = build_runtime(settings, load=not settings.is_testing)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Starting UrbanTrack (env=%s)", settings.app_env)
        saver: asyncio.Task[None] | None = None
        if not settings.is_testing:
            saver = asyncio.create_task(
                runtime.snapshot_worker.run_forever(settings.save_interval_seconds)
            )
        yield
        logger.info("Shutting down UrbanTrack")
        if saver is not None:
            saver.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await saver
        await runtime.dispatcher.close()
        if not settings.is_testing:
            logger.info("Saving state...")
            runtime.snapshot_worker.run()

    application = FastAPI(
        title="UrbanTrack",
        description="Real-time rider tracking with points, badges and challenges",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    application.state.settings = settings
    application.state.runtime = runtime

    setup_middleware(application)

    _register_routes(application)

    # Built client, served last so API and WebSocket routes win
    if settings.static_dir:
        static_dir = Path(settings.static_dir)
        if static_dir.is_dir():
            application.mount("/", StaticFiles(directory=str(static_dir), html=True), name="client")
        else:
            logger.warning("Static dir %s not found, client not served", static_dir)

    return application


def _register_routes(app: FastAPI) -> None:
    """Register all API route modules."""
    from urbantrack.api.routes.auth import router as auth_router
    from urbantrack.api.routes.health import router as health_router
    from urbantrack.api.routes.riders import router as riders_router
    from urbantrack.api.routes.ws import router as ws_router

    app.include_router(health_router, tags=["health"])
    app.include_router(auth_router)
    app.include_router(riders_router)
    app.include_router(ws_router)


# Module-level app instance for uvicorn (uvicorn urbantrack.main:app)
app = create_app()
