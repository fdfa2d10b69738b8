"""Public models for the status endpoints."""

from linkmeup.models.responses import ApiResponse, ProbeResultModel, ProxyStatusModel

__all__ = [
    "ApiResponse",
    "ProbeResultModel",
    "ProxyStatusModel",
]
