"""Configuration module: runtime settings and the installation file."""

from linkmeup.config.installations import (
    Installation,
    LinkmeupConfig,
    TeleportConfig,
    health_check_url_for,
    load_config,
)
from linkmeup.config.settings import LinkmeupSettings

__all__ = [
    "Installation",
    "LinkmeupConfig",
    "LinkmeupSettings",
    "TeleportConfig",
    "health_check_url_for",
    "load_config",
]
