"""``stateside track PATH_ID --case FILE.json`` — reconcile a tracked case.

The case file holds user-entered milestones keyed by stage id::

    {
      "milestones": {
        "perm": {"status": "approved", "filedDate": "2023-01-10",
                 "approvedDate": "2024-03-02"},
        "i140": {"filedDate": "2024-04-01", "receiptNumber": "SRC2412345678"}
      },
      "portedPriorityDate": {"priorityDate": "2019-06-01", "category": "eb3"}
    }

Malformed dates and receipt numbers are tolerated; they show up as
not-yet-recorded rather than aborting the command.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from stateside.cli.loaders import build_engine, load_profile, parse_as_of, read_json
from stateside.models.case import TrackedCase
from stateside.models.profile import FilterState
from stateside.monitor.renderer import TimelineRenderer

console = Console()


def track_cmd(
    path_id: str = typer.Argument(
        ...,
        help="The planned path id (see `stateside paths`).",
    ),
    case_file: Path = typer.Option(
        ...,
        "--case",
        "-C",
        help="JSON file with the tracked case milestones.",
    ),
    profile_file: Path = typer.Option(
        None,
        "--profile",
        "-p",
        help="JSON file with the applicant profile.",
    ),
    live: bool = typer.Option(
        False, "--live", "-L", help="Fetch live processing times and bulletin charts."
    ),
    as_of: str = typer.Option(
        None, "--as-of", help="Reconcile as of this date (YYYY-MM-DD). Defaults to today."
    ),
) -> None:
    """Reconcile recorded milestones against a planned path."""
    profile = load_profile(profile_file) if profile_file is not None else FilterState()
    tracked = TrackedCase.from_raw(read_json(case_file)).model_copy(
        update={"planned_path_id": path_id}
    )

    engine = build_engine(live)
    projection = engine.project(profile, parse_as_of(as_of), tracked_case=tracked)

    reconciled = projection.get_reconciled(path_id)
    if reconciled is None:
        console.print(f"[bold red]Path not available for this profile:[/bold red] {path_id}")
        if projection.path_ids:
            console.print("\n[bold]Available paths:[/bold]")
            for pid in projection.path_ids:
                console.print(f"  [cyan]{pid}[/cyan]")
        raise typer.Exit(code=1)

    renderer = TimelineRenderer(console=console)
    renderer.print_reconciled(reconciled)
    if projection.uses_default_data:
        console.print("[yellow]Some figures use built-in default data.[/yellow]")
