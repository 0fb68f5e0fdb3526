"""FastAPI application entrypoint and configuration.

This module provides the application factory for the twilight overlay
service. The factory builds the server-side host map, the clock and the
bounded tile pool, includes the tile, overlay and sun routers, and exposes a
health check endpoint. When ``live`` is enabled the application lifespan
mounts a CrossfadeScheduler that keeps the overlay in step with the current
time.

Example:
    The application can be run with uvicorn:
        $ uvicorn crepuscule.main:app --reload

    Or imported and used programmatically:
        >>> from crepuscule.main import create_app
        >>> app = create_app()
        >>> # Use app in ASGI server
"""

from __future__ import annotations

import contextlib
from concurrent import futures
from typing import TYPE_CHECKING

import fastapi
import uvicorn
from fastapi.middleware import cors

from crepuscule.api import overlays, sun, tiles
from crepuscule.core import clock as clock_module
from crepuscule.core import config
from crepuscule.core import log
from crepuscule.map import host as host_module
from crepuscule.map import models
from crepuscule.services import crossfade

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = log.get_logger(__name__)


def create_app(
    settings: config.Settings | None = None,
    clock: clock_module.Clock | None = None,
) -> fastapi.FastAPI:
    """Create and configure the FastAPI application.

    Sets up logging, the host map every overlay is mounted on, CORS
    middleware and the API routers. Each application start creates the tile
    generation pool and marks the host map loaded, which mounts pending
    overlays; on shutdown the live overlay is unmounted and the pool shut
    down.

    Args:
        settings: Settings to use; the cached settings when None.
        clock: Time source; wall time on the running event loop when None.

    Returns:
        Configured FastAPI application instance ready for ASGI server.
        ``app.state`` holds ``settings``, ``clock``, ``host_map``,
        ``executor`` and ``scheduler``. The tile pool is created on every
        startup and shut down with it; both are None outside a running
        application, and the scheduler stays None when live mode is off.
    """
    settings = settings or config.get_settings()
    log.configure_logging(level=settings.log_level, json_logs=settings.json_logs)
    clock = clock or clock_module.SystemClock()
    host_map = host_module.InMemoryHostMap(clock)

    @contextlib.asynccontextmanager
    async def lifespan(app: fastapi.FastAPI) -> AsyncIterator[None]:
        executor = futures.ThreadPoolExecutor(
            max_workers=settings.tile_workers,
            thread_name_prefix="crepuscule-tile",
        )
        app.state.executor = executor
        if settings.live:
            app.state.scheduler = crossfade.CrossfadeScheduler(
                host_map,
                models.CrepusculeOptions.from_settings(settings),
                clock=clock,
                tile_size=settings.tile_size,
                refresh_interval_ms=settings.refresh_interval_ms,
                swap_delay_ms=settings.swap_delay_ms,
                fade_duration_ms=settings.fade_duration_ms,
                executor=executor,
            )
        host_map.mark_loaded()
        logger.info("Crepuscule service started (live=%s)", settings.live)
        try:
            yield
        finally:
            if app.state.scheduler is not None:
                app.state.scheduler.unmount()
                app.state.scheduler = None
            executor.shutdown(wait=False, cancel_futures=True)
            app.state.executor = None
            logger.info("Crepuscule service stopped")

    app = fastapi.FastAPI(title="Crepuscule", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.clock = clock
    app.state.host_map = host_map
    app.state.executor = None
    app.state.scheduler = None

    app.include_router(tiles.router)
    app.include_router(overlays.router)
    app.include_router(sun.router)

    app.add_middleware(
        cors.CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health() -> dict[str, str]:  # type: ignore[misc]
        """Health check endpoint for monitoring and load balancers.

        Returns:
            Dictionary with status "ok" if the service is running.
        """
        return {"status": "ok"}

    return app


def run() -> None:
    """Serve the application with uvicorn on port 8000."""
    uvicorn.run("crepuscule.main:app", host="0.0.0.0", port=8000)


app = create_app()
