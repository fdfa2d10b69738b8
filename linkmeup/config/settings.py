"""Pydantic Settings for linkmeup.

All environment variables use the LINKMEUP_ prefix.
Example: LINKMEUP_PAC_PORT=9998, LINKMEUP_LOG_LEVEL=debug
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


class LinkmeupSettings(BaseSettings):
    """Runtime configuration validated from environment variables."""

    # Logging
    log_level: str = "INFO"
    log_json: bool = False
    log_file: str | None = None  # Used when the dashboard owns the terminal

    # Installation file; None searches the default locations
    config_path: str | None = None

    # PAC server
    pac_host: str = "localhost"
    pac_port: int = Field(default=9999, ge=1, le=65535)

    # Tunnels
    base_proxy_port: int = Field(default=1080, ge=1, le=65535)
    tsh_binary: str = "tsh"
    launch_grace_seconds: float = Field(default=0.5, ge=0)
    stop_timeout_seconds: float = Field(default=5.0, gt=0)

    # Probing
    probe_interval_seconds: float = Field(default=30.0, gt=0)
    probe_timeout_seconds: float = Field(default=20.0, ge=10, le=20)
    inventory_timeout_seconds: float = Field(default=30.0, gt=0)
    probe_initial_delay_seconds: float = Field(default=10.0, ge=0)
    failover_threshold: int = Field(default=1, ge=1)

    # Dashboard
    dashboard_refresh_seconds: float = Field(default=1.0, gt=0)

    model_config = {"env_prefix": "LINKMEUP_"}

    @field_validator("log_level")
    @classmethod
    def _normalise_log_level(cls, value: str) -> str:
        level = value.upper()
        if level == "WARN":
            level = "WARNING"
        if level not in LOG_LEVELS:
            raise ValueError(
                f"Invalid log level: {value}. Valid options are: debug, info, warn, error"
            )
        return level
