"""PAC file endpoint.

The script is rendered from the registry snapshot on every request, so it
always reflects the current proxy list.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Request, Response

from linkmeup.pac.generator import PAC_CONTENT_TYPE, render_pac

if TYPE_CHECKING:
    from linkmeup.proxy.registry import ProxyRegistry

logger = logging.getLogger(__name__)

PAC_PATH = "/proxy.pac"


def create_pac_router(*, registry: ProxyRegistry) -> APIRouter:
    """Factory that creates the PAC router bound to ``registry``."""

    pac_router = APIRouter(tags=["pac"])

    @pac_router.get(PAC_PATH)
    async def proxy_pac(request: Request) -> Response:
        logger.debug("Serving request to PAC file: %s", request.url)
        return Response(
            content=render_pac(registry.snapshot()),
            media_type=PAC_CONTENT_TYPE,
        )

    return pac_router
