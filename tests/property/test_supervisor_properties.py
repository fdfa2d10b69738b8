"""Property tests for the proxy supervisor.

Drives a supervisor through arbitrary probe outcome sequences and checks
that at most one tunnel is ever live, health follows the latest outcome,
health transitions are logged exactly once each and every failover moves to
a different node.
"""

from __future__ import annotations

import asyncio
import logging
import random

from hypothesis import given, settings
from hypothesis import strategies as st

from strategies import probe_outcomes
from fakes import HEALTHY, SERVER_ERROR, FakeInventory, FakeLauncher, FakeProber
from linkmeup.proxy.ports import PortAllocator
from linkmeup.proxy.supervisor import ProxySupervisor
from linkmeup.proxy.types import HealthState, SupervisorState

_TRANSITION_MESSAGES = ("Proxy %s healthy (status %s, %.0f ms)", "Proxy %s unhealthy: %s")


class _ListHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__(level=logging.DEBUG)
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


def _run_async(coro):
    """Run an async coroutine synchronously."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _make(node_count: int, seed: int) -> tuple[ProxySupervisor, FakeLauncher, FakeProber]:
    nodes = [f"gremlin-cp-{i}" for i in range(node_count)]
    launcher = FakeLauncher()
    prober = FakeProber()
    supervisor = ProxySupervisor(
        "gremlin",
        "gremlin.example.com",
        "https://happaapi.gremlin.example.com/healthz",
        port_allocator=PortAllocator(1080),
        inventory=FakeInventory({"gremlin": nodes}),
        launcher=launcher,
        prober=prober,
        probe_interval_seconds=3600,
        probe_initial_delay_seconds=3600,
        rng=random.Random(seed),
    )
    return supervisor, launcher, prober


async def _drive(supervisor: ProxySupervisor, prober: FakeProber, outcomes: list[bool]) -> list:
    snapshots = []
    await supervisor.start()
    try:
        for ok in outcomes:
            prober.results = [HEALTHY if ok else SERVER_ERROR]
            await supervisor.run_probe_cycle()
            snapshots.append(supervisor.status)
    finally:
        await supervisor.stop()
    return snapshots


def _transitions(outcomes: list[bool]) -> int:
    return 1 + sum(1 for a, b in zip(outcomes, outcomes[1:]) if a != b)


@settings(max_examples=100, deadline=None)
@given(
    outcomes=probe_outcomes,
    node_count=st.integers(1, 5),
    seed=st.integers(0, 2**32 - 1),
)
def test_outcome_sequences(outcomes: list[bool], node_count: int, seed: int) -> None:
    supervisor, launcher, prober = _make(node_count, seed)

    logger = logging.getLogger("linkmeup.proxy.supervisor")
    handler = _ListHandler()
    previous_level = logger.level
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    try:
        snapshots = _run_async(_drive(supervisor, prober, outcomes))
    finally:
        logger.removeHandler(handler)
        logger.setLevel(previous_level)

    # Never two tunnels on the port, and nothing left running.
    assert launcher.max_live <= 1
    assert launcher.live == []

    # Health is exactly the latest outcome.
    for ok, snapshot in zip(outcomes, snapshots):
        assert snapshot.health == (HealthState.HEALTHY if ok else HealthState.UNHEALTHY)
        assert snapshot.state == SupervisorState.RUNNING

    # One failover per failed probe, each to a different node when possible.
    failures = outcomes.count(False)
    assert snapshots[-1].failovers == failures
    assert len(launcher.starts) == 1 + failures
    if node_count >= 2:
        for before, after in zip(launcher.starts, launcher.starts[1:]):
            assert before != after

    logged = [r for r in handler.records if r.msg in _TRANSITION_MESSAGES]
    assert len(logged) == _transitions(outcomes)

    assert supervisor.status.state == SupervisorState.STOPPED
    assert supervisor.status.health == HealthState.UNKNOWN
