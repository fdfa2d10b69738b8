"""Installation file models and YAML loader.

The file lists the installations to create proxies for, plus optional
Teleport login settings::

    installations:
      - name: gremlin
        domain: gremlin.example.com
    teleport:
      proxy: teleport.example.com:443
      auth: github
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from linkmeup.middleware.error_handler import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "linkmeup.yaml"
HEALTH_CHECK_SUBDOMAIN = "happaapi"
HEALTH_CHECK_PATH = "/healthz"


def health_check_url_for(domain: str) -> str:
    """Health endpoint probed through an installation's tunnel."""
    return f"https://{HEALTH_CHECK_SUBDOMAIN}.{domain}{HEALTH_CHECK_PATH}"


class Installation(BaseModel):
    """A private installation reachable through its own tunnel."""

    model_config = {"frozen": True}

    name: str = ""
    domain: str = ""

    @property
    def health_check_url(self) -> str:
        if not self.domain:
            return ""
        return health_check_url_for(self.domain)


class TeleportConfig(BaseModel):
    """Values passed to ``tsh login``."""

    proxy: str | None = None
    auth: str | None = None


class LinkmeupConfig(BaseModel):
    installations: list[Installation] = Field(default_factory=list)
    teleport: TeleportConfig = Field(default_factory=TeleportConfig)


def default_config_paths() -> list[Path]:
    """Locations searched when no explicit path is given, in order."""
    return [
        Path.home() / ".config" / CONFIG_FILE_NAME,
        Path.cwd() / CONFIG_FILE_NAME,
    ]


def find_config_file(path: str | None = None) -> Path:
    """Resolve the installation file, raising ``ConfigurationError`` if absent."""
    if path:
        candidate = Path(path).expanduser()
        if not candidate.is_file():
            raise ConfigurationError(f"Config file not found: {candidate}")
        return candidate

    for candidate in default_config_paths():
        if candidate.is_file():
            return candidate

    searched = ", ".join(str(p) for p in default_config_paths())
    raise ConfigurationError(f"No config file found (searched {searched})")


def load_config(path: str | None = None) -> LinkmeupConfig:
    """Load and validate the installation file.

    Raises
    ------
    ConfigurationError
        If the file is missing, is not valid YAML, does not match the schema
        or lists no installations.
    """
    config_file = find_config_file(path)

    try:
        raw = yaml.safe_load(config_file.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Error reading config file {config_file}: {exc}") from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config file {config_file} must contain a mapping")

    try:
        config = LinkmeupConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigurationError(
            f"Unable to decode config file {config_file}: {exc}"
        ) from exc

    if not config.installations:
        raise ConfigurationError(f"No installations found in config file {config_file}")

    logger.info("Using config file %s", config_file)
    return config
