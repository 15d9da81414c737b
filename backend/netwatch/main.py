# netwatch/main.py
# ------------------------------------------------------------
# FastAPI entrypoint for the connectivity dashboard backend.
#
# Responsibilities:
# - App initialization & middleware
# - Route registration
# - Startup wiring of the service container
# - Background refresh loop (initial automatic load + periodic)
# ------------------------------------------------------------

from contextlib import asynccontextmanager
import asyncio
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, settings as default_settings
from .services import Services, build_services
from .routes import admin, alerts, dashboard, health, settings as settings_routes, telemetry, timeline

logger = logging.getLogger(__name__)


async def refresh_loop(svc: Services) -> None:
    """
    Keeps the dashboard warm. The first pass is the initial load;
    a manual refresh may overlap with it safely (last write wins).
    """
    while True:
        try:
            await svc.dashboard.refresh(force=True)
            await svc.alerts.list_alerts()
        except Exception:  # noqa: BLE001
            logger.exception("background refresh failed")
        await asyncio.sleep(max(1, svc.settings.refresh_interval_sec))


def create_app(settings: Settings = default_settings, services: Optional[Services] = None) -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        svc = services or build_services(settings)
        app.state.services = svc

        task = None
        if settings.refresh_enabled:
            # Fire-and-forget background task
            task = asyncio.create_task(refresh_loop(svc))
        try:
            yield
        finally:
            if task is not None:
                task.cancel()
            await svc.close()

    # --------------------------------------------------------
    # FastAPI application instance
    # --------------------------------------------------------
    app = FastAPI(
        title="Netwatch Connectivity API",
        version="0.1.0",
        description="Multi-source internet connectivity aggregation",
        lifespan=lifespan,
    )

    # --------------------------------------------------------
    # CORS configuration
    # Allows frontend dashboards to connect safely
    # --------------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("unhandled exception on %s %s", request.method, request.url)
        return JSONResponse(
            status_code=500,
            content={"ok": False, "error": str(exc), "path": str(request.url)},
        )

    # --------------------------------------------------------
    # API routes
    # --------------------------------------------------------
    app.include_router(dashboard.router)
    app.include_router(alerts.router)
    app.include_router(timeline.router)
    app.include_router(telemetry.router)
    app.include_router(settings_routes.router)
    app.include_router(health.router)
    app.include_router(admin.router)

    return app


app = create_app()
