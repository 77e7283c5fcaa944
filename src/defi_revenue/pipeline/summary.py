"""Rich console summary of a revenue run."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..adapters.revenue_adapters import RevenueResult


def _truncate_address(address: str) -> str:
    """Truncate address for display."""
    if len(address) <= 14:
        return address
    return f"{address[:10]}...{address[-4:]}"


def _format_amount(value: Decimal) -> str:
    return f"{value:,.6f}"


def build_revenue_table(results: list[tuple[str, RevenueResult]]) -> Table:
    """One row per address; fee-share results get one row per token."""
    table = Table(expand=True)
    table.add_column("Address", style="cyan", no_wrap=True)
    table.add_column("Token", style="dim")
    table.add_column("Revenue", justify="right", style="green")

    total = Decimal(0)
    for address, revenue in results:
        if isinstance(revenue, dict):
            for network_tokens in revenue.values():
                for token_id, amount in sorted(network_tokens.items()):
                    table.add_row(_truncate_address(address), token_id, f"{int(amount):,}")
            if not revenue:
                table.add_row(_truncate_address(address), "", "0")
            continue
        total += revenue
        table.add_row(_truncate_address(address), "", _format_amount(revenue))

    if any(not isinstance(r, dict) for _, r in results):
        table.add_row("[bold]TOTAL[/]", "", f"[bold]{_format_amount(total)}[/]")
    return table


def print_revenue_summary(
    protocol: str,
    start: datetime,
    end: datetime,
    results: list[tuple[str, RevenueResult]],
    console: Console | None = None,
) -> None:
    """Print the revenue table to stderr so stdout stays free for data."""
    console = console or Console(stderr=True)
    title = (
        f"[bold]{protocol}[/] revenue  "
        f"[dim]{start.isoformat()} → {end.isoformat()}[/]"
    )
    console.print(Panel(build_revenue_table(results), title=title, border_style="blue"))
