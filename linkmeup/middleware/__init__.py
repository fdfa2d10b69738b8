"""Middleware package: error hierarchy and exception handlers."""

from linkmeup.middleware.error_handler import (
    ConfigurationError,
    EmptyStatusOutputError,
    InvalidConfigurationError,
    InvalidKeyPairError,
    InventoryUnavailableError,
    LaunchFailedError,
    LinkmeupError,
    NoNodesFoundError,
    NotLoggedInError,
    ProfileExpiredError,
    ProxyNotFoundError,
    StopFailedError,
    register_error_handlers,
)

__all__ = [
    "ConfigurationError",
    "EmptyStatusOutputError",
    "InvalidConfigurationError",
    "InvalidKeyPairError",
    "InventoryUnavailableError",
    "LaunchFailedError",
    "LinkmeupError",
    "NoNodesFoundError",
    "NotLoggedInError",
    "ProfileExpiredError",
    "ProxyNotFoundError",
    "StopFailedError",
    "register_error_handlers",
]
