"""Proxy package: tunnel supervision, health probing and node failover."""

from linkmeup.proxy.ports import PortAllocator
from linkmeup.proxy.registry import ProxyRegistry
from linkmeup.proxy.supervisor import ProxySupervisor, select_node
from linkmeup.proxy.types import HealthState, ProbeResult, ProxyStatus, SupervisorState

__all__ = [
    "HealthState",
    "PortAllocator",
    "ProbeResult",
    "ProxyRegistry",
    "ProxyStatus",
    "ProxySupervisor",
    "SupervisorState",
    "select_node",
]
