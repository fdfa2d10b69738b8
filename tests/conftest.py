"""Shared test fixtures for the linkmeup test suite."""

from __future__ import annotations

import os
import random

import pytest

from fakes import FakeInventory, FakeLauncher, FakeProber
from linkmeup.config.installations import Installation, LinkmeupConfig
from linkmeup.config.settings import LinkmeupSettings
from linkmeup.proxy.ports import PortAllocator
from linkmeup.proxy.supervisor import ProxySupervisor


# ---------------------------------------------------------------------------
# Keep the developer's environment out of settings
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _clear_linkmeup_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("LINKMEUP_"):
            monkeypatch.delenv(key)


# ---------------------------------------------------------------------------
# Settings and configuration fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def settings() -> LinkmeupSettings:
    """Test settings with fast timings."""
    return LinkmeupSettings(
        probe_interval_seconds=0.01,
        probe_timeout_seconds=10,
        probe_initial_delay_seconds=0,
        launch_grace_seconds=0,
    )


@pytest.fixture
def installations() -> list[Installation]:
    return [
        Installation(name="gremlin", domain="gremlin.example.com"),
        Installation(name="golem", domain="golem.example.com"),
    ]


@pytest.fixture
def linkmeup_config(installations: list[Installation]) -> LinkmeupConfig:
    return LinkmeupConfig(installations=installations)


# ---------------------------------------------------------------------------
# Collaborator fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def inventory() -> FakeInventory:
    return FakeInventory(
        {
            "gremlin": ["gremlin-cp-1", "gremlin-cp-2", "gremlin-cp-3"],
            "golem": ["golem-cp-1"],
            "empty": [],
        }
    )


@pytest.fixture
def launcher() -> FakeLauncher:
    return FakeLauncher()


@pytest.fixture
def prober() -> FakeProber:
    return FakeProber()


@pytest.fixture
def port_allocator() -> PortAllocator:
    return PortAllocator(1080)


@pytest.fixture
def make_supervisor(inventory, launcher, prober, port_allocator):
    """Factory for supervisors wired to the fake collaborators."""

    def _make(
        name: str = "gremlin",
        domain: str = "gremlin.example.com",
        health_check_url: str | None = None,
        **kwargs,
    ) -> ProxySupervisor:
        kwargs.setdefault("probe_interval_seconds", 3600)
        kwargs.setdefault("probe_timeout_seconds", 1)
        kwargs.setdefault("probe_initial_delay_seconds", 3600)
        kwargs.setdefault("rng", random.Random(1234))
        return ProxySupervisor(
            name,
            domain,
            health_check_url if health_check_url is not None else f"https://happaapi.{domain}/healthz",
            port_allocator=port_allocator,
            inventory=inventory,
            launcher=launcher,
            prober=prober,
            **kwargs,
        )

    return _make

