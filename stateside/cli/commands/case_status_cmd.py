"""``stateside case-status RECEIPT...`` — look up USCIS case status.

Up to five receipt numbers per call.  A case whose status cannot be read is
shown as unavailable with the URL to check by hand; the command then exits
with code 1.
"""

from __future__ import annotations

import typer
from rich.console import Console

from stateside.bridge.case_status import MAX_BULK_RECEIPTS, CaseStatusClient
from stateside.errors import CaseStatusUnavailable, InvalidReceiptNumberError
from stateside.monitor.renderer import TimelineRenderer

console = Console()


def case_status_cmd(
    receipts: list[str] = typer.Argument(
        ...,
        help=f"Receipt numbers, e.g. SRC2412345678 (max {MAX_BULK_RECEIPTS}).",
    ),
) -> None:
    """Look up one or more USCIS cases by receipt number."""
    if len(receipts) > MAX_BULK_RECEIPTS:
        console.print(
            f"[bold red]Too many receipt numbers:[/bold red] {len(receipts)} "
            f"(maximum {MAX_BULK_RECEIPTS})"
        )
        raise typer.Exit(code=1)

    with CaseStatusClient() as client:
        try:
            results = client.lookup_many(receipts)
        except InvalidReceiptNumberError as exc:
            console.print(f"[bold red]{exc.message}[/bold red]")
            console.print("[dim]Expected 3 letters + 10 digits, e.g. SRC2412345678[/dim]")
            raise typer.Exit(code=1)

    renderer = TimelineRenderer(console=console)
    console.print(renderer.render_case_status(results))

    failed = [r for r in results if isinstance(r, CaseStatusUnavailable)]
    if failed:
        console.print("\n[bold]Check these cases manually:[/bold]")
        for item in failed:
            console.print(f"  [cyan]{item.receipt_number}[/cyan]  {item.url}")
        raise typer.Exit(code=1)
