"""Command line entry point.

Loads settings and the installation file, checks the Teleport session, then
serves the PAC file with uvicorn until interrupted. Configuration and login
problems are fatal and exit with code 1.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
import uvicorn
from pydantic import ValidationError
from rich.console import Console

from linkmeup.config.installations import TeleportConfig, load_config
from linkmeup.config.settings import LinkmeupSettings
from linkmeup.integration.teleport_status import get_login_status, login
from linkmeup.logging_config import configure_logging
from linkmeup.main import create_app, pac_url
from linkmeup.middleware.error_handler import (
    LinkmeupError,
    NotLoggedInError,
    ProfileExpiredError,
)

logger = logging.getLogger(__name__)

app = typer.Typer(
    add_completion=False,
    help=(
        "Provides Teleport proxies to private installations and serves a proxy "
        "auto-configuration (PAC) file for browsers and operating systems."
    ),
)
console = Console(stderr=True)

DEFAULT_DASHBOARD_LOG_FILE = "linkmeup.log"


def fail(message: str) -> typer.Exit:
    console.print(f"[bold red]Error:[/] {message}")
    return typer.Exit(code=1)


async def ensure_logged_in(settings: LinkmeupSettings, teleport: TeleportConfig) -> None:
    """Check the Teleport session, logging in interactively when possible."""
    try:
        profile = await get_login_status(settings.tsh_binary)
    except (NotLoggedInError, ProfileExpiredError) as exc:
        if not teleport.proxy:
            raise
        logger.info("%s, running tsh login", exc.message)
        await login(teleport, settings.tsh_binary)
        profile = await get_login_status(settings.tsh_binary)

    if profile is None:
        if not teleport.proxy:
            raise NotLoggedInError("No active Teleport profile")
        await login(teleport, settings.tsh_binary)
        profile = await get_login_status(settings.tsh_binary)
        if profile is None:
            raise NotLoggedInError("No active Teleport profile after login")

    logger.info("Logged in to %s as %s", profile.cluster, profile.username)


@app.command()
def main(
    config: Optional[Path] = typer.Option(
        None, "--config", help="Config file (default $HOME/.config/linkmeup.yaml)"
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Log level (debug, info, warn, error)"
    ),
    dashboard: bool = typer.Option(
        False, "--dashboard/--no-dashboard", help="Show a live status table"
    ),
    pac_port: Optional[int] = typer.Option(None, "--pac-port", help="Port serving the PAC file"),
    skip_login_check: bool = typer.Option(
        False, "--skip-login-check", help="Do not check the Teleport session"
    ),
) -> None:
    """Start one proxy per installation and serve the PAC file."""
    overrides: dict = {}
    if config is not None:
        overrides["config_path"] = str(config)
    if log_level is not None:
        overrides["log_level"] = log_level
    if pac_port is not None:
        overrides["pac_port"] = pac_port

    try:
        settings = LinkmeupSettings(**overrides)
    except ValidationError as exc:
        raise fail(f"Invalid settings:\n{exc}") from None

    log_file = settings.log_file
    if dashboard and log_file is None:
        log_file = DEFAULT_DASHBOARD_LOG_FILE
    configure_logging(settings.log_level, json_format=settings.log_json, log_file=log_file)
    logger.debug("Starting linkmeup with log level %s", settings.log_level)

    try:
        linkmeup_config = load_config(settings.config_path)
    except LinkmeupError as exc:
        raise fail(exc.message) from None

    if not skip_login_check:
        try:
            asyncio.run(ensure_logged_in(settings, linkmeup_config.teleport))
        except LinkmeupError as exc:
            raise fail(f"Teleport session check failed: {exc.message}") from None

    application = create_app(settings, linkmeup_config, dashboard=dashboard)

    if not dashboard:
        console.print(f"Serving PAC file at [bold]{pac_url(settings)}[/]. Press Ctrl+C to quit.")

    uvicorn.run(
        application,
        host=settings.pac_host,
        port=settings.pac_port,
        log_level="warning",
        log_config=None,
    )


if __name__ == "__main__":
    app()
