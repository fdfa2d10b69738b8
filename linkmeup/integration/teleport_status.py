"""Teleport login preflight.

Runs ``tsh status --format=json`` and turns its output into structured data,
classifying the well-known failure messages into typed errors. ``login`` runs
``tsh login`` interactively when a fresh session is needed.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime

from pydantic import BaseModel, Field, ValidationError

from linkmeup.config.installations import TeleportConfig
from linkmeup.middleware.error_handler import (
    ConfigurationError,
    EmptyStatusOutputError,
    InvalidKeyPairError,
    LinkmeupError,
    NotLoggedInError,
    ProfileExpiredError,
)

logger = logging.getLogger(__name__)

_STDERR_ERRORS: tuple[tuple[str, type[LinkmeupError]], ...] = (
    ("not logged in", NotLoggedInError),
    ("profile expired", ProfileExpiredError),
    ("private and public keys do not form a valid keypair", InvalidKeyPairError),
)


class TeleportTraits(BaseModel):
    github_teams: list[str] | None = None
    kubernetes_groups: list[str] | None = None
    kubernetes_users: list[str] | None = None
    logins: list[str] | None = None


class TeleportProfile(BaseModel):
    """The active profile reported by ``tsh status``."""

    profile_url: str = ""
    username: str = ""
    cluster: str = ""
    roles: list[str] | None = None
    traits: TeleportTraits = Field(default_factory=TeleportTraits)
    logins: list[str] | None = None
    kubernetes_enabled: bool = False
    kubernetes_cluster: str = ""
    valid_until: datetime | None = None


class TeleportStatus(BaseModel):
    active: TeleportProfile | None = None


def classify_stderr(stderr: str) -> LinkmeupError | None:
    """Map a known ``tsh`` error message to its typed error, if any."""
    lowered = stderr.lower()
    for needle, error_cls in _STDERR_ERRORS:
        if needle in lowered:
            return error_cls()
    return None


def parse_status(stdout: str, stderr: str = "") -> TeleportProfile | None:
    """Interpret ``tsh status --format=json`` output from a successful run.

    Returns ``None`` when there is no active profile.
    """
    if not stdout.strip():
        if "not logged in" in stderr.lower():
            raise NotLoggedInError()
        logger.debug("tsh status command yielded error: %s", stderr)
        raise EmptyStatusOutputError()

    try:
        status = TeleportStatus.model_validate(json.loads(stdout))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise LinkmeupError(f"Unparseable tsh status output: {exc}") from exc

    if status.active is None or not status.active.profile_url:
        return None
    return status.active


async def get_login_status(tsh_binary: str = "tsh") -> TeleportProfile | None:
    """Return the active Teleport profile, or ``None`` if there is none.

    Raises
    ------
    NotLoggedInError, ProfileExpiredError, InvalidKeyPairError
        For the corresponding ``tsh`` error messages.
    EmptyStatusOutputError
        If ``tsh`` printed nothing.
    LinkmeupError
        For any other failure to run ``tsh status``.
    """
    try:
        process = await asyncio.create_subprocess_exec(
            tsh_binary,
            "status",
            "--format=json",
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout_bytes, stderr_bytes = await process.communicate()
    except OSError as exc:
        raise LinkmeupError(f"Failed to run {tsh_binary} status: {exc}") from exc

    stdout = stdout_bytes.decode(errors="replace")
    stderr = stderr_bytes.decode(errors="replace").strip()

    if process.returncode != 0:
        known = classify_stderr(stderr)
        if known is not None:
            raise known
        raise LinkmeupError(f"tsh status exited with code {process.returncode}, stderr: {stderr}")

    return parse_status(stdout, stderr)


def login_command(teleport: TeleportConfig, tsh_binary: str = "tsh") -> list[str]:
    if not teleport.proxy:
        raise ConfigurationError("teleport.proxy must be set to log in")
    command = [tsh_binary, "login", f"--proxy={teleport.proxy}"]
    if teleport.auth:
        command.append(f"--auth={teleport.auth}")
    return command


async def login(teleport: TeleportConfig, tsh_binary: str = "tsh") -> None:
    """Run ``tsh login`` attached to the terminal, so browser/SSO prompts work."""
    command = login_command(teleport, tsh_binary)
    logger.info("Logging in to Teleport via %s", teleport.proxy)
    try:
        process = await asyncio.create_subprocess_exec(*command)
        returncode = await process.wait()
    except OSError as exc:
        raise LinkmeupError(f"Failed to run {tsh_binary} login: {exc}") from exc
    if returncode != 0:
        raise NotLoggedInError(f"tsh login exited with code {returncode}")
