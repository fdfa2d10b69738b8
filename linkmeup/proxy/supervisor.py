"""Per-installation proxy supervisor.

Owns one SOCKS5 tunnel for an installation, probes the installation's health
endpoint through it, and fails over to a different node when probes fail.

State machine:
- Stopped → Starting: ``start()`` lists nodes and launches the first tunnel
- Starting → Running: initial launch attempted, probe loop scheduled
- Running → Restarting: probe failure triggers failover (stop, select, start)
- Restarting → Running: replacement tunnel launched (or launch failed)
- any → Stopped: ``stop()`` cancels the probe loop and kills the tunnel

Health (Unknown / Healthy / Unhealthy) moves only on probe outcomes; ``stop()``
resets it to Unknown.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import random
from collections.abc import Sequence
from typing import Protocol

from linkmeup.middleware.error_handler import (
    InvalidConfigurationError,
    InventoryUnavailableError,
    LaunchFailedError,
    NoNodesFoundError,
    StopFailedError,
)
from linkmeup.proxy.ports import PortAllocator
from linkmeup.proxy.tunnel import TunnelHandle
from linkmeup.proxy.types import HealthState, ProbeResult, ProxyStatus, SupervisorState

logger = logging.getLogger(__name__)


class Inventory(Protocol):
    async def list_nodes(self, installation: str) -> list[str]: ...


class Launcher(Protocol):
    async def start(self, node: str, port: int) -> TunnelHandle: ...

    async def stop(self, handle: TunnelHandle | None) -> None: ...


class Prober(Protocol):
    async def probe(self, port: int, url: str, timeout: float = 10.0) -> ProbeResult: ...


def select_node(
    candidates: Sequence[str],
    current: str | None,
    rng: random.Random | None = None,
) -> str:
    """Pick a node, avoiding ``current`` whenever another candidate exists.

    Candidates are shuffled on every call, so repeated failovers spread over
    all nodes. With a single candidate that candidate is returned.
    """
    if not candidates:
        raise NoNodesFoundError()
    shuffled = list(candidates)
    (rng or random).shuffle(shuffled)
    for node in shuffled:
        if node != current:
            return node
    return shuffled[0]


class ProxySupervisor:
    """Supervises the tunnel of a single installation.

    Parameters
    ----------
    name, domain:
        Installation name and the DNS suffix routed through this proxy.
    health_check_url:
        URL probed through the tunnel.
    port_allocator:
        Source of this proxy's local port; the port is taken at construction.
    inventory, launcher, prober:
        Node listing, tunnel process and health probe collaborators.
    probe_interval_seconds:
        Pause between probes.
    probe_timeout_seconds:
        Upper bound for a single probe.
    probe_initial_delay_seconds:
        Pause between launching the first tunnel and the first probe.
    failover_threshold:
        Consecutive failed probes that trigger a failover.
    rng:
        Random source for node selection.
    """

    def __init__(
        self,
        name: str,
        domain: str,
        health_check_url: str,
        *,
        port_allocator: PortAllocator,
        inventory: Inventory,
        launcher: Launcher,
        prober: Prober,
        probe_interval_seconds: float = 30.0,
        probe_timeout_seconds: float = 20.0,
        probe_initial_delay_seconds: float = 0.0,
        failover_threshold: int = 1,
        rng: random.Random | None = None,
    ) -> None:
        if not name:
            raise InvalidConfigurationError("Installation name cannot be empty")
        if not domain:
            raise InvalidConfigurationError(
                f"Domain cannot be empty for installation {name}", installation=name
            )
        if not health_check_url:
            raise InvalidConfigurationError(
                f"Health check URL cannot be empty for installation {name}",
                installation=name,
            )

        self.name = name
        self.domain = domain
        self.health_check_url = health_check_url
        self.port = port_allocator.allocate()

        self._inventory = inventory
        self._launcher = launcher
        self._prober = prober
        self._probe_interval = probe_interval_seconds
        self._probe_timeout = probe_timeout_seconds
        self._initial_delay = probe_initial_delay_seconds
        self._failover_threshold = max(1, failover_threshold)
        self._rng = rng or random.Random()

        self._initialized = False
        self._candidates: list[str] = []
        self._last_selected: str | None = None
        self._tunnel: TunnelHandle | None = None
        self._health = HealthState.UNKNOWN
        self._last_probe: ProbeResult | None = None
        self._consecutive_failures = 0
        self._failovers = 0
        self._state = SupervisorState.STOPPED

        self._probe_task: asyncio.Task[None] | None = None
        # Serialises stop-then-start so two tunnels never overlap.
        self._tunnel_lock = asyncio.Lock()

        self._status = self._build_status()

    # ------------------------------------------------------------------
    # Read-only accessors
    # ------------------------------------------------------------------

    @property
    def status(self) -> ProxyStatus:
        """Latest published snapshot."""
        return self._status

    @property
    def health(self) -> HealthState:
        return self._health

    @property
    def candidates(self) -> list[str]:
        return list(self._candidates)

    @property
    def active_node(self) -> str | None:
        return self._tunnel.node if self._tunnel is not None else None

    @property
    def tunnel(self) -> TunnelHandle | None:
        return self._tunnel

    @property
    def running(self) -> bool:
        return self._state != SupervisorState.STOPPED

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """List candidate nodes. Failures leave the proxy without candidates."""
        try:
            self._candidates = await self._inventory.list_nodes(self.name)
        except (InventoryUnavailableError, NoNodesFoundError) as exc:
            logger.warning(
                "No usable nodes for proxy %s: %s",
                self.name,
                exc.message,
                extra={"proxy": self.name, "error": exc.message},
            )
            self._candidates = []
        else:
            logger.debug(
                "Proxy %s has %d candidate nodes", self.name, len(self._candidates)
            )
        self._initialized = True
        self._publish()

    async def start(self) -> None:
        """Launch the tunnel and schedule the probe loop. No-op while running."""
        if self.running:
            return
        if not self._initialized:
            await self.initialize()

        self._set_state(SupervisorState.STARTING)
        logger.info(
            "Starting proxy %s for %s on port %d",
            self.name,
            self.domain,
            self.port,
            extra={"proxy": self.name, "domain": self.domain, "port": self.port},
        )

        if self._candidates:
            async with self._tunnel_lock:
                await self._launch(self._select())
            self._probe_task = asyncio.create_task(
                self._probe_loop(), name=f"probe-{self.name}"
            )

        self._set_state(SupervisorState.RUNNING)

    async def stop(self) -> None:
        """Cancel probing, kill the tunnel and reset health. Idempotent."""
        task, self._probe_task = self._probe_task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        async with self._tunnel_lock:
            await self._stop_tunnel()

        was_running = self.running
        self._health = HealthState.UNKNOWN
        self._consecutive_failures = 0
        self._set_state(SupervisorState.STOPPED)
        if was_running:
            logger.info("Stopped proxy %s", self.name, extra={"proxy": self.name})

    # ------------------------------------------------------------------
    # Probing and failover
    # ------------------------------------------------------------------

    async def run_probe_cycle(self) -> ProbeResult:
        """Probe once, record the outcome and fail over if warranted."""
        result = await self._prober.probe(
            self.port, self.health_check_url, self._probe_timeout
        )
        self._record_probe(result)

        if (
            not result.success
            and self._candidates
            and self._consecutive_failures >= self._failover_threshold
        ):
            await self._failover()

        return result

    async def _probe_loop(self) -> None:
        if self._initial_delay > 0:
            await asyncio.sleep(self._initial_delay)
        while True:
            try:
                await self.run_probe_cycle()
            except asyncio.CancelledError:
                raise
            except Exception:  # noqa: BLE001
                logger.exception("Probe cycle failed for proxy %s", self.name)
            await asyncio.sleep(self._probe_interval)

    def _record_probe(self, result: ProbeResult) -> None:
        previous = self._health
        self._health = HealthState.HEALTHY if result.success else HealthState.UNHEALTHY
        self._last_probe = result
        if result.success:
            self._consecutive_failures = 0
        else:
            self._consecutive_failures += 1

        extra = {
            "proxy": self.name,
            "port": self.port,
            "node": self.active_node,
            "response_code": result.status_code,
            "duration_ms": result.duration_ms,
        }
        if self._health != previous:
            if result.success:
                logger.info(
                    "Proxy %s healthy (status %s, %.0f ms)",
                    self.name,
                    result.status_code,
                    result.duration_ms,
                    extra=extra,
                )
            else:
                logger.warning(
                    "Proxy %s unhealthy: %s",
                    self.name,
                    result.error or f"status {result.status_code}",
                    extra={**extra, "error": result.error},
                )
        else:
            logger.debug(
                "Probe for proxy %s: success=%s status=%s error=%s",
                self.name,
                result.success,
                result.status_code,
                result.error,
                extra=extra,
            )

        self._publish()

    async def _failover(self) -> None:
        """Replace the tunnel: stop the old one, select a node, start a new one."""
        async with self._tunnel_lock:
            self._set_state(SupervisorState.RESTARTING)
            previous = self._last_selected
            await self._stop_tunnel()
            node = self._select()
            logger.info(
                "Failing over proxy %s from %s to %s",
                self.name,
                previous or "-",
                node,
                extra={"proxy": self.name, "node": node},
            )
            await self._launch(node)
            self._failovers += 1
            self._consecutive_failures = 0
            self._set_state(SupervisorState.RUNNING)

    # ------------------------------------------------------------------
    # Tunnel handling (callers hold _tunnel_lock)
    # ------------------------------------------------------------------

    def _select(self) -> str:
        node = select_node(self._candidates, self._last_selected, self._rng)
        self._last_selected = node
        return node

    async def _launch(self, node: str) -> None:
        try:
            self._tunnel = await self._launcher.start(node, self.port)
        except LaunchFailedError as exc:
            logger.error(
                "Failed to start tunnel for proxy %s: %s",
                self.name,
                exc.message,
                extra={"proxy": self.name, "node": node, "error": exc.message},
            )
            self._tunnel = None
        self._publish()

    async def _stop_tunnel(self) -> None:
        # The handle is dropped even if the kill fails, so no stale state leaks.
        handle, self._tunnel = self._tunnel, None
        try:
            await self._launcher.stop(handle)
        except StopFailedError as exc:
            logger.error(
                "Failed to stop tunnel for proxy %s: %s",
                self.name,
                exc.message,
                extra={"proxy": self.name, "error": exc.message},
            )
        self._publish()

    # ------------------------------------------------------------------
    # Status publication
    # ------------------------------------------------------------------

    def _set_state(self, state: SupervisorState) -> None:
        self._state = state
        self._publish()

    def _publish(self) -> None:
        self._status = self._build_status()

    def _build_status(self) -> ProxyStatus:
        return ProxyStatus(
            name=self.name,
            domain=self.domain,
            port=self.port,
            state=self._state,
            health=self._health,
            candidates=tuple(self._candidates),
            active_node=self.active_node,
            tunnel_pid=self._tunnel.pid if self._tunnel is not None else None,
            last_probe=self._last_probe,
            consecutive_failures=self._consecutive_failures,
            failovers=self._failovers,
        )
