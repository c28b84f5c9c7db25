"""Rich terminal renderer for composed and reconciled timelines.

Color scheme
------------
- cyan      : status track
- blue      : green-card track
- yellow    : priority-date wait
- green     : done / approved
- bold red  : denied
- dim       : not started
"""

from __future__ import annotations

from collections.abc import Sequence

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from stateside.bridge.case_status import CaseStatusKind, CaseStatusResult
from stateside.core.engine import Projection
from stateside.core.velocity import VelocityEstimate
from stateside.errors import CaseStatusUnavailable
from stateside.models.case import ReconciledPath, StageProgress
from stateside.models.paths import ComposedPath, ComposedStage
from stateside.models.stages import Track

# ---------------------------------------------------------------------------
# Style mapping
# ---------------------------------------------------------------------------

_TRACK_STYLES: dict[Track, str] = {
    Track.STATUS: "cyan",
    Track.GC: "blue",
}

_PROGRESS_ICONS: dict[StageProgress, str] = {
    StageProgress.DONE: "[green]DONE[/green]",
    StageProgress.IN_PROGRESS: "[yellow]IN PROGRESS[/yellow]",
    StageProgress.NOT_STARTED: "[dim]NOT STARTED[/dim]",
}

_CASE_STATUS_STYLES: dict[CaseStatusKind, str] = {
    CaseStatusKind.APPROVED: "bold green",
    CaseStatusKind.DENIED: "bold red",
    CaseStatusKind.RFE_ISSUED: "bold yellow",
    CaseStatusKind.RFE_RESPONSE_FILED: "yellow",
    CaseStatusKind.PENDING: "cyan",
    CaseStatusKind.OTHER: "dim",
}


def _years(value: float) -> str:
    return f"{value:.1f} yr"


class TimelineRenderer:
    """Renders projections as Rich terminal output.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    # ------------------------------------------------------------------
    # Composed paths
    # ------------------------------------------------------------------

    def render_path(self, path: ComposedPath) -> Panel:
        """Render one composed path as a Panel containing a stage table."""
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("Track", width=7)
        table.add_column("Stage", min_width=24)
        table.add_column("Start", justify="right", width=8)
        table.add_column("Duration", justify="right", width=12)
        table.add_column("Details", min_width=20)

        for stage in path.stages:
            style = "yellow" if stage.is_priority_wait else _TRACK_STYLES[stage.track]
            name = stage.display_name + (" [dim](concurrent)[/dim]" if stage.is_concurrent else "")
            table.add_row(
                f"[{_TRACK_STYLES[stage.track]}]{stage.track.value}[/{_TRACK_STYLES[stage.track]}]",
                f"[{style}]{name}[/{style}]",
                _years(stage.start_years),
                "-" if stage.is_terminal else stage.duration.display,
                self._details(stage),
            )

        summary_parts: list[str] = [
            f"[bold]Total:[/bold] {path.total_years.display}",
            f"[bold]Est. cost:[/bold] ${path.estimated_cost:,}",
        ]
        if path.priority_date_str:
            origin = "existing" if path.priority_date_is_existing else "if filed now"
            summary_parts.append(f"[bold]PD:[/bold] {path.priority_date_str} ({origin})")
        if path.concurrent_filing_eligible:
            summary_parts.append("[green]concurrent filing[/green]")
        if path.has_lottery:
            summary_parts.append("[yellow]lottery[/yellow]")
        if path.is_self_petition:
            summary_parts.append("[magenta]self-petition[/magenta]")

        parts: list[Text | Table] = [table, Text(""), Text.from_markup("  |  ".join(summary_parts))]
        if path.uses_default_data:
            parts.append(Text.from_markup("[dim]Some figures use built-in default data.[/dim]"))

        return Panel(
            Group(*parts),
            title=f"[bold]{path.name}[/bold]",
            subtitle=path.gc_category,
            border_style="blue",
            padding=(1, 2),
        )

    @staticmethod
    def _details(stage: ComposedStage) -> str:
        parts: list[str] = []
        info = stage.velocity_info
        if info is not None:
            parts.append(info.explanation)
            if info.range_min_months != info.range_max_months:
                parts.append(
                    f"range: {round(info.range_min_months / 12)}-{round(info.range_max_months / 12)} yr"
                )
            if info.needs_disclosure:
                parts.append(
                    f"[yellow]Estimate confidence: {round(info.confidence * 100)}%[/yellow]"
                )
        if stage.note:
            parts.append(f"[dim]{stage.note}[/dim]")
        return "\n".join(parts) if parts else "[dim]-[/dim]"

    def render_projection(self, projection: Projection) -> Group:
        """All paths of a projection, one panel each."""
        if not projection.paths:
            return Group(Text.from_markup("[dim]No admissible pathways for this profile.[/dim]"))
        return Group(*(self.render_path(p) for p in projection.paths))

    # ------------------------------------------------------------------
    # Reconciled case
    # ------------------------------------------------------------------

    def render_reconciled(self, reconciled: ReconciledPath) -> Panel:
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("Stage", min_width=24)
        table.add_column("Progress", justify="center", min_width=12)
        table.add_column("Remaining", justify="right", width=12)
        table.add_column("Filed", width=11)
        table.add_column("Approved", width=11)
        table.add_column("Notes", min_width=16)

        for stage in reconciled.stages:
            table.add_row(
                stage.display_name,
                _PROGRESS_ICONS[stage.progress],
                "-" if stage.progress == StageProgress.DONE else stage.remaining.display,
                stage.filed_date.isoformat() if stage.filed_date else "[dim]-[/dim]",
                stage.approved_date.isoformat() if stage.approved_date else "[dim]-[/dim]",
                f"[dim]{stage.note}[/dim]" if stage.note else "",
            )

        summary_parts = [
            f"[bold]Done:[/bold] {reconciled.completed_count}/{len(reconciled.stages)}",
            f"[bold]Remaining:[/bold] {reconciled.remaining_display}",
            f"[bold]Est. completion:[/bold] {reconciled.estimated_completion.isoformat()}",
        ]
        if reconciled.effective_priority_date_str:
            summary_parts.append(
                f"[bold]Effective PD:[/bold] {reconciled.effective_priority_date_str}"
                f" ({reconciled.priority_date_source})"
            )
        return Panel(
            Group(table, Text(""), Text.from_markup("  |  ".join(summary_parts))),
            title=f"[bold]{reconciled.name}[/bold] (your case)",
            border_style="green",
            padding=(1, 2),
        )

    # ------------------------------------------------------------------
    # Velocity and case status
    # ------------------------------------------------------------------

    def render_velocity(self, estimates: Sequence[VelocityEstimate]) -> Table:
        table = Table(title="Visa Bulletin Velocity", header_style="bold cyan")
        table.add_column("Category")
        table.add_column("Chargeability")
        table.add_column("Rate (mo/yr)", justify="right")
        table.add_column("Confidence", justify="right")
        table.add_column("Samples", justify="right")
        table.add_column("Notes")
        for est in estimates:
            if est.is_current:
                rate = "[green]current[/green]"
            elif est.rate_months_per_year >= 10:
                rate = f"[blue]{est.rate_months_per_year:.1f}[/blue]"
            else:
                rate = f"{est.rate_months_per_year:.1f}"
            note = "[yellow]fallback[/yellow]" if est.is_fallback else ""
            table.add_row(
                est.category.label,
                est.chargeability.label,
                rate,
                f"{round(est.confidence * 100)}%",
                str(est.sample_count),
                note,
            )
        return table

    def render_case_status(
        self, results: Sequence[CaseStatusResult | CaseStatusUnavailable]
    ) -> Table:
        table = Table(title="USCIS Case Status", header_style="bold cyan", show_lines=True)
        table.add_column("Receipt")
        table.add_column("Status")
        table.add_column("Form")
        table.add_column("Updated")
        table.add_column("Details")
        for item in results:
            if isinstance(item, CaseStatusUnavailable):
                table.add_row(
                    item.receipt_number,
                    "[bold red]unavailable[/bold red]",
                    "",
                    "",
                    f"{item.message}\n[dim]{item.url}[/dim]",
                )
                continue
            style = _CASE_STATUS_STYLES[item.status]
            table.add_row(
                item.receipt_number,
                f"[{style}]{item.title}[/{style}]",
                item.form_type or "",
                item.last_updated.isoformat() if item.last_updated else "",
                item.description,
            )
        return table

    # ------------------------------------------------------------------
    # Standalone print
    # ------------------------------------------------------------------

    def print_projection(self, projection: Projection) -> None:
        self.console.print(self.render_projection(projection))

    def print_reconciled(self, reconciled: ReconciledPath) -> None:
        self.console.print(self.render_reconciled(reconciled))
