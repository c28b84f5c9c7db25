"""``stateside velocity`` — bulletin movement per category and chargeability."""

from __future__ import annotations

import typer
from rich.console import Console

from stateside.cli.loaders import build_engine, parse_as_of
from stateside.monitor.renderer import TimelineRenderer

console = Console()


def velocity_cmd(
    live: bool = typer.Option(
        False, "--live", "-L", help="Include the live Final Action chart as the latest sample."
    ),
    as_of: str = typer.Option(
        None, "--as-of", help="Estimate as of this date (YYYY-MM-DD). Defaults to today."
    ),
) -> None:
    """Show the estimated advance rate of every Final Action cutoff."""
    engine = build_engine(live)
    estimates = engine.velocity(parse_as_of(as_of))
    ordered = [
        estimates[key]
        for key in sorted(estimates, key=lambda k: (k[0].value, k[1].value))
    ]
    renderer = TimelineRenderer(console=console)
    console.print(renderer.render_velocity(ordered))

    fallbacks = sum(1 for e in ordered if e.is_fallback)
    if fallbacks:
        console.print(
            f"[yellow]{fallbacks} estimate(s) use the fallback rate; "
            "too few usable bulletin samples.[/yellow]"
        )
