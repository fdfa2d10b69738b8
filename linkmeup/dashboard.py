"""Terminal dashboard showing the status of every proxy.

A read-only view: it renders ``ProxyRegistry.snapshot()`` on every tick and
never touches supervisor state.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import TYPE_CHECKING

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from linkmeup.proxy.types import HealthState, ProxyStatus

if TYPE_CHECKING:
    from linkmeup.proxy.registry import ProxyRegistry

BORDER_STYLE = "#5a4fcf"


def status_cell(status: ProxyStatus) -> Text:
    if not status.has_nodes:
        return Text("- No Nodes", style="bold #FFAF00")
    if status.health == HealthState.HEALTHY:
        return Text("✓ Healthy", style="bold #04B575")
    if status.health == HealthState.UNKNOWN:
        return Text("… Checking", style="bold #FFAF00")
    return Text("✗ Unhealthy", style="bold #FF5F87")


def build_table(statuses: Iterable[ProxyStatus]) -> Table:
    table = Table(border_style=BORDER_STYLE, header_style=f"bold on {BORDER_STYLE}")
    table.add_column("Name", width=20, no_wrap=True)
    table.add_column("Domain", width=35, no_wrap=True)
    table.add_column("Status", width=12)
    table.add_column("Port", width=6, justify="right")
    table.add_column("Nodes", width=7, justify="right")
    table.add_column("Active Node", width=25, no_wrap=True)
    for status in statuses:
        table.add_row(
            status.name,
            status.domain,
            status_cell(status),
            str(status.port),
            str(status.node_count),
            status.active_node or "-",
        )
    return table


def render(statuses: Iterable[ProxyStatus], pac_url: str) -> Panel:
    """Whole dashboard: title, proxy table and PAC URL hint."""
    footer = Text.assemble(
        "PAC file: ",
        (pac_url, f"bold underline {BORDER_STYLE}"),
        "\nPress Ctrl+C to quit.",
        style="#626262",
    )
    return Panel(
        Group(build_table(statuses), footer),
        title="linkmeup",
        border_style=BORDER_STYLE,
    )


async def run_dashboard(
    registry: ProxyRegistry,
    pac_url: str,
    refresh_seconds: float = 1.0,
    console: Console | None = None,
) -> None:
    """Redraw the dashboard every ``refresh_seconds`` until cancelled."""
    with Live(
        render(registry.snapshot(), pac_url),
        console=console,
        auto_refresh=False,
        screen=False,
    ) as live:
        while True:
            await asyncio.sleep(refresh_seconds)
            live.update(render(registry.snapshot(), pac_url), refresh=True)
