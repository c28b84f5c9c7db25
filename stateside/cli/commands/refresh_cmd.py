"""``stateside refresh`` — force the live endpoint to refresh and report."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from stateside.bridge.live_data import LiveDataClient, load_snapshot

console = Console()


def refresh_cmd(
    url: str = typer.Option(
        None, "--url", "-u", help="Endpoint URL (defaults to STATESIDE_LIVE_DATA_URL)."
    ),
) -> None:
    """Force-refresh live data and summarize what had to be defaulted."""
    with LiveDataClient(url) as client:
        snapshot = load_snapshot(client, force_refresh=True)
        source = client.url

    table = Table(title="Live Data", show_header=False)
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    table.add_row("Endpoint", source)
    table.add_row(
        "Fetched at",
        snapshot.fetched_at.isoformat() if snapshot.fetched_at else "[dim]never[/dim]",
    )
    table.add_row(
        "Status",
        "[yellow]using defaults[/yellow]" if snapshot.uses_defaults else "[green]live[/green]",
    )
    console.print(table)

    if snapshot.defaulted_fields:
        console.print("\n[bold]Defaulted fields:[/bold]")
        for field in snapshot.defaulted_fields:
            console.print(f"  [yellow]{field}[/yellow]")
