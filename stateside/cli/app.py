"""Main Typer application — imports and registers all CLI commands.

Entry point: ``stateside`` (configured via pyproject.toml scripts).

Commands: paths, track, velocity, case-status, refresh.
"""

from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from stateside.cli.commands.case_status_cmd import case_status_cmd
from stateside.cli.commands.paths_cmd import paths_cmd
from stateside.cli.commands.refresh_cmd import refresh_cmd
from stateside.cli.commands.track_cmd import track_cmd
from stateside.cli.commands.velocity_cmd import velocity_cmd
from stateside.config import config

app = typer.Typer(
    name="stateside",
    help="Stateside: green-card pathway timelines from your profile and the Visa Bulletin.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


def configure_logging(level: str) -> None:
    """Route log records to stderr through Rich.

    Unknown level names fall back to INFO.
    """
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO
    logging.basicConfig(
        level=numeric,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.callback()
def root(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show debug logging."
    ),
) -> None:
    configure_logging("DEBUG" if verbose or config.debug else config.log_level)


# Register subcommands
app.command(name="paths", help="Show every pathway open to a profile.")(paths_cmd)
app.command(name="track", help="Reconcile a tracked case against its planned path.")(track_cmd)
app.command(name="velocity", help="Show Visa Bulletin velocity estimates.")(velocity_cmd)
app.command(name="case-status", help="Look up USCIS case status (max 5).")(case_status_cmd)
app.command(name="refresh", help="Force-refresh live processing data.")(refresh_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
