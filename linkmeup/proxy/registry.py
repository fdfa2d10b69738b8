"""Registry of proxy supervisors, one per configured installation.

The PAC server and the dashboard only read from the registry via
``snapshot()``; they never mutate supervisor state.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Iterable, Iterator

from linkmeup.config.installations import Installation
from linkmeup.config.settings import LinkmeupSettings
from linkmeup.middleware.error_handler import InvalidConfigurationError, ProxyNotFoundError
from linkmeup.proxy.inventory import NodeInventoryClient
from linkmeup.proxy.ports import PortAllocator
from linkmeup.proxy.prober import HealthProber
from linkmeup.proxy.supervisor import Inventory, Launcher, Prober, ProxySupervisor
from linkmeup.proxy.tunnel import TunnelLauncher
from linkmeup.proxy.types import HealthState, ProxyStatus

logger = logging.getLogger(__name__)


class ProxyRegistry:
    """Ordered collection of proxy supervisors."""

    def __init__(self, supervisors: Iterable[ProxySupervisor] = ()) -> None:
        self._supervisors: list[ProxySupervisor] = []
        for supervisor in supervisors:
            self.add(supervisor)

    @classmethod
    def from_installations(
        cls,
        installations: Iterable[Installation],
        settings: LinkmeupSettings,
        *,
        inventory: Inventory | None = None,
        launcher: Launcher | None = None,
        prober: Prober | None = None,
        port_allocator: PortAllocator | None = None,
        rng: random.Random | None = None,
    ) -> ProxyRegistry:
        """Build one supervisor per installation.

        An invalid installation is logged and skipped; the others are still
        created. Ports are allocated in installation order.
        """
        allocator = port_allocator or PortAllocator(settings.base_proxy_port)
        inventory = inventory or NodeInventoryClient(
            settings.tsh_binary,
            timeout_seconds=settings.inventory_timeout_seconds,
            kill_timeout_seconds=settings.stop_timeout_seconds,
        )
        launcher = launcher or TunnelLauncher(
            settings.tsh_binary,
            launch_grace_seconds=settings.launch_grace_seconds,
            stop_timeout_seconds=settings.stop_timeout_seconds,
        )
        prober = prober or HealthProber()

        registry = cls()
        for installation in installations:
            try:
                supervisor = ProxySupervisor(
                    installation.name,
                    installation.domain,
                    installation.health_check_url,
                    port_allocator=allocator,
                    inventory=inventory,
                    launcher=launcher,
                    prober=prober,
                    probe_interval_seconds=settings.probe_interval_seconds,
                    probe_timeout_seconds=settings.probe_timeout_seconds,
                    probe_initial_delay_seconds=settings.probe_initial_delay_seconds,
                    failover_threshold=settings.failover_threshold,
                    rng=rng,
                )
            except InvalidConfigurationError as exc:
                logger.error("Skipping installation %r: %s", installation.name, exc.message)
                continue
            registry.add(supervisor)
        return registry

    def add(self, supervisor: ProxySupervisor) -> None:
        if any(s.port == supervisor.port for s in self._supervisors):
            raise ValueError(f"Port {supervisor.port} is already taken")
        self._supervisors.append(supervisor)

    def get(self, name: str) -> ProxySupervisor:
        for supervisor in self._supervisors:
            if supervisor.name == name:
                return supervisor
        raise ProxyNotFoundError(f"No proxy named {name!r}", name=name)

    def __iter__(self) -> Iterator[ProxySupervisor]:
        return iter(list(self._supervisors))

    def __len__(self) -> int:
        return len(self._supervisors)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start_all(self) -> None:
        """Start every supervisor concurrently. One failure does not stop the rest."""
        results = await asyncio.gather(
            *(s.start() for s in self._supervisors), return_exceptions=True
        )
        for supervisor, result in zip(self._supervisors, results):
            if isinstance(result, BaseException):
                logger.error(
                    "Failed to start proxy %s: %s",
                    supervisor.name,
                    result,
                    exc_info=result,
                )

    async def stop_all(self) -> None:
        """Stop every supervisor. Each teardown is independent and best-effort."""
        results = await asyncio.gather(
            *(s.stop() for s in self._supervisors), return_exceptions=True
        )
        for supervisor, result in zip(self._supervisors, results):
            if isinstance(result, BaseException):
                logger.error(
                    "Failed to stop proxy %s: %s",
                    supervisor.name,
                    result,
                    exc_info=result,
                )

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def snapshot(self) -> list[ProxyStatus]:
        """Latest status of every proxy, in registration order."""
        return [s.status for s in self._supervisors]

    def get_stats(self) -> dict:
        """Aggregate counts for the health endpoint."""
        statuses = self.snapshot()
        return {
            "total": len(statuses),
            "healthy": sum(1 for s in statuses if s.health == HealthState.HEALTHY),
            "unhealthy": sum(1 for s in statuses if s.health == HealthState.UNHEALTHY),
            "unknown": sum(1 for s in statuses if s.health == HealthState.UNKNOWN),
            "no_nodes": sum(1 for s in statuses if not s.has_nodes),
        }
