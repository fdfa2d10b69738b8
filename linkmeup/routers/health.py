"""Health and status endpoints.

- GET /health: aggregate proxy counts
- GET /proxies: snapshot of every proxy
- GET /proxies/{name}: snapshot of one proxy
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter

from linkmeup.models.responses import ApiResponse, ProxyStatusModel

if TYPE_CHECKING:
    from linkmeup.proxy.registry import ProxyRegistry


def create_health_router(*, registry: ProxyRegistry) -> APIRouter:
    """Factory that creates the status router bound to ``registry``."""

    health_router = APIRouter(tags=["health"])

    @health_router.get("/health")
    async def health() -> dict:
        """Service health with aggregate proxy counts."""
        return ApiResponse(
            success=True,
            data={"status": "ok", "proxies": registry.get_stats()},
        ).model_dump()

    @health_router.get("/proxies")
    async def list_proxies() -> dict:
        """Latest snapshot of every proxy, in PAC order."""
        return ApiResponse(
            success=True,
            data=[
                ProxyStatusModel.from_status(status).model_dump()
                for status in registry.snapshot()
            ],
        ).model_dump()

    @health_router.get("/proxies/{name}")
    async def get_proxy(name: str) -> dict:
        """Latest snapshot of one proxy. Unknown names yield 404."""
        supervisor = registry.get(name)
        return ApiResponse(
            success=True,
            data=ProxyStatusModel.from_status(supervisor.status).model_dump(),
        ).model_dump()

    return health_router
