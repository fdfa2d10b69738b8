"""Global error hierarchy and FastAPI exception handlers.

All linkmeup-specific errors extend LinkmeupError. Most of them never reach an
HTTP client: supervisor failures are logged and degrade a single proxy. The
FastAPI exception handlers catch the ones that do (plus unhandled exceptions)
and return a consistent JSON envelope: { success, data, error, meta }.
"""

from __future__ import annotations

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Error hierarchy
# ---------------------------------------------------------------------------


class LinkmeupError(Exception):
    """Base error for all linkmeup-specific errors."""

    status_code: int = 500
    message: str = "Internal server error"

    def __init__(self, message: str | None = None, **kwargs: object) -> None:
        self.message = message or self.__class__.message
        self.details = kwargs
        super().__init__(self.message)


class ConfigurationError(LinkmeupError):
    """Installation file or runtime settings could not be loaded."""

    message = "Configuration could not be loaded"


class InvalidConfigurationError(LinkmeupError):
    """A single installation entry is missing its name, domain or check URL."""

    status_code = 422
    message = "Invalid installation configuration"


class InventoryUnavailableError(LinkmeupError):
    """The node listing command failed or produced unusable output."""

    status_code = 502
    message = "Node inventory unavailable"


class NoNodesFoundError(LinkmeupError):
    """The node listing command succeeded but returned no nodes."""

    status_code = 404
    message = "No nodes found for installation"


class LaunchFailedError(LinkmeupError):
    """The tunnel process could not be started."""

    status_code = 502
    message = "Tunnel process could not be started"


class StopFailedError(LinkmeupError):
    """The tunnel process could not be killed."""

    message = "Tunnel process could not be stopped"


class NotLoggedInError(LinkmeupError):
    """The user is not logged in to Teleport."""

    status_code = 401
    message = "User not logged in"


class ProfileExpiredError(LinkmeupError):
    """The active Teleport profile has expired."""

    status_code = 401
    message = "Active profile expired"


class InvalidKeyPairError(LinkmeupError):
    """Teleport reports a broken local key pair."""

    status_code = 401
    message = "Private and public keys do not form a valid keypair"


class EmptyStatusOutputError(LinkmeupError):
    """``tsh status --format=json`` printed nothing."""

    status_code = 502
    message = "Command 'tsh status --format=json' yielded no output"


class ProxyNotFoundError(LinkmeupError):
    """No proxy is registered under the requested name."""

    status_code = 404
    message = "Proxy not found"


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------


def _envelope(
    status_code: int,
    error: str,
    meta: dict | None = None,
) -> JSONResponse:
    """Build a JSON envelope error response."""
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "data": None,
            "error": error,
            "meta": meta,
        },
    )


async def _linkmeup_error_handler(_request: Request, exc: LinkmeupError) -> JSONResponse:
    """Handle LinkmeupError subclasses."""
    meta = exc.details if exc.details else None
    return _envelope(exc.status_code, exc.message, meta=meta)


async def _unhandled_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions: log the traceback, return a generic 500."""
    logger.error(
        "Unhandled exception: %s\n%s",
        exc,
        traceback.format_exc(),
    )
    return _envelope(status_code=500, error="Internal server error")


# ---------------------------------------------------------------------------
# Registration helper
# ---------------------------------------------------------------------------


def register_error_handlers(app: FastAPI) -> None:
    """Wire up all exception handlers on the FastAPI application."""
    app.add_exception_handler(LinkmeupError, _linkmeup_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_error_handler)  # type: ignore[arg-type]
