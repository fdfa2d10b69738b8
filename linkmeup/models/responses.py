"""Response models for the status endpoints.

Every JSON response is wrapped in the envelope
{ success: bool, data: T | None, error: str | None, meta: dict | None }.
"""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel

from linkmeup.proxy.types import ProxyStatus

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """JSON envelope for all API responses."""

    success: bool
    data: T | None = None
    error: str | None = None
    meta: dict | None = None


class ProbeResultModel(BaseModel):
    success: bool
    status_code: int | None = None
    error: str | None = None
    duration_ms: float


class ProxyStatusModel(BaseModel):
    """Public view of one proxy."""

    name: str
    domain: str
    port: int
    state: str
    health: str
    node_count: int
    active_node: str | None = None
    tunnel_pid: int | None = None
    last_probe: ProbeResultModel | None = None
    consecutive_failures: int = 0
    failovers: int = 0

    @classmethod
    def from_status(cls, status: ProxyStatus) -> ProxyStatusModel:
        probe = None
        if status.last_probe is not None:
            probe = ProbeResultModel(
                success=status.last_probe.success,
                status_code=status.last_probe.status_code,
                error=status.last_probe.error,
                duration_ms=status.last_probe.duration_ms,
            )
        return cls(
            name=status.name,
            domain=status.domain,
            port=status.port,
            state=status.state.value,
            health=status.health.value,
            node_count=status.node_count,
            active_node=status.active_node,
            tunnel_pid=status.tunnel_pid,
            last_probe=probe,
            consecutive_failures=status.consecutive_failures,
            failovers=status.failovers,
        )
