"""Proxy data models for the supervisor and its readers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class HealthState(str, Enum):
    """Health of a proxy as seen by its most recent probe."""

    UNKNOWN = "unknown"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class SupervisorState(str, Enum):
    """Lifecycle states of a proxy supervisor."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    RESTARTING = "restarting"


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of a single health probe through a tunnel."""

    success: bool
    status_code: int | None = None
    error: str | None = None
    duration: float = 0.0  # seconds

    @property
    def duration_ms(self) -> float:
        return round(self.duration * 1000, 1)


@dataclass(frozen=True)
class ProxyStatus:
    """Read-only snapshot of one proxy.

    Supervisors replace their snapshot wholesale on every change, so readers
    (PAC server, dashboard) never observe a partially updated record.
    """

    name: str
    domain: str
    port: int
    state: SupervisorState = SupervisorState.STOPPED
    health: HealthState = HealthState.UNKNOWN
    candidates: tuple[str, ...] = field(default_factory=tuple)
    active_node: str | None = None
    tunnel_pid: int | None = None
    last_probe: ProbeResult | None = None
    consecutive_failures: int = 0
    failovers: int = 0

    @property
    def node_count(self) -> int:
        return len(self.candidates)

    @property
    def has_nodes(self) -> bool:
        return bool(self.candidates)

    @property
    def healthy(self) -> bool:
        return self.health == HealthState.HEALTHY
