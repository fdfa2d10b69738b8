"""Unit tests for the terminal dashboard."""

from __future__ import annotations

import asyncio

import pytest
from rich.console import Console

from linkmeup.dashboard import build_table, render, run_dashboard, status_cell
from linkmeup.proxy.registry import ProxyRegistry
from linkmeup.proxy.types import HealthState, ProxyStatus

_NODES = ("gremlin-cp-1", "gremlin-cp-2")


def _status(health: HealthState = HealthState.UNKNOWN, candidates=_NODES, **kwargs) -> ProxyStatus:
    return ProxyStatus(
        name="gremlin",
        domain="gremlin.example.com",
        port=1080,
        health=health,
        candidates=tuple(candidates),
        **kwargs,
    )


def _text(renderable) -> str:
    console = Console(record=True, width=140, color_system=None)
    console.print(renderable)
    return console.export_text()


class TestStatusCell:
    def test_no_nodes_wins(self):
        assert status_cell(_status(HealthState.HEALTHY, candidates=())).plain == "- No Nodes"

    @pytest.mark.parametrize(
        "health,label",
        [
            (HealthState.HEALTHY, "✓ Healthy"),
            (HealthState.UNKNOWN, "… Checking"),
            (HealthState.UNHEALTHY, "✗ Unhealthy"),
        ],
    )
    def test_labels(self, health, label):
        assert status_cell(_status(health)).plain == label


class TestBuildTable:
    def test_row_contents(self):
        output = _text(build_table([_status(HealthState.HEALTHY, active_node="gremlin-cp-2")]))
        for column in ("Name", "Domain", "Status", "Port", "Nodes", "Active Node"):
            assert column in output
        assert "gremlin.example.com" in output
        assert "1080" in output
        assert "gremlin-cp-2" in output

    def test_missing_active_node_shows_dash(self):
        table = build_table([_status()])
        assert table.row_count == 1
        assert list(table.columns[5].cells) == ["-"]

    def test_footer_shows_pac_url(self):
        output = _text(render([_status()], "http://localhost:9999/proxy.pac"))
        assert "http://localhost:9999/proxy.pac" in output
        assert "Ctrl+C" in output


class TestRunDashboard:
    @pytest.mark.asyncio
    async def test_redraws_until_cancelled(self, make_supervisor):
        registry = ProxyRegistry([make_supervisor()])
        console = Console(record=True, width=140, color_system=None, force_terminal=False)

        task = asyncio.create_task(
            run_dashboard(registry, "http://localhost:9999/proxy.pac", refresh_seconds=0.01, console=console)
        )
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert "gremlin" in console.export_text()
