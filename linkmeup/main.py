"""FastAPI application serving the PAC file, with lifespan management.

Startup: start every proxy supervisor (tunnel launch + probe loop) and, when
enabled, the terminal dashboard.
Shutdown: cancel the dashboard, then stop every supervisor so no tunnel
process outlives the service.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from linkmeup.config.installations import LinkmeupConfig
from linkmeup.config.settings import LinkmeupSettings
from linkmeup.dashboard import run_dashboard
from linkmeup.middleware.error_handler import register_error_handlers
from linkmeup.proxy.registry import ProxyRegistry
from linkmeup.routers.health import create_health_router
from linkmeup.routers.pac import PAC_PATH, create_pac_router

logger = logging.getLogger(__name__)


def pac_url(settings: LinkmeupSettings) -> str:
    return f"http://{settings.pac_host}:{settings.pac_port}{PAC_PATH}"


def create_app(
    settings: LinkmeupSettings,
    config: LinkmeupConfig,
    *,
    registry: ProxyRegistry | None = None,
    dashboard: bool = False,
) -> FastAPI:
    """Create the application with one proxy supervisor per installation."""
    if registry is None:
        registry = ProxyRegistry.from_installations(config.installations, settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting %d proxies", len(registry))
        await registry.start_all()

        dashboard_task: asyncio.Task[None] | None = None
        if dashboard:
            dashboard_task = asyncio.create_task(
                run_dashboard(
                    registry,
                    pac_url(settings),
                    refresh_seconds=settings.dashboard_refresh_seconds,
                )
            )

        logger.info("Serving proxy auto-configuration (PAC) file at %s", pac_url(settings))

        yield

        # --- Shutdown ---
        logger.info("Shutting down proxies and auto-configuration server")

        if dashboard_task is not None:
            dashboard_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await dashboard_task

        await registry.stop_all()
        logger.info("All proxies stopped")

    app = FastAPI(
        title="linkmeup",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.registry = registry

    register_error_handlers(app)

    app.include_router(create_pac_router(registry=registry))
    app.include_router(create_health_router(registry=registry))

    return app
