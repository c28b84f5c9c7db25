"""``stateside paths`` — compose every pathway open to a profile.

The profile comes from options or from a JSON file (``--profile``); options
given alongside a file are ignored.  Output is one panel per path with the
stage table, total range, estimated cost and priority-date details.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from stateside.cli.loaders import build_engine, load_profile, parse_as_of
from stateside.core.composer import ComposeOptions
from stateside.models.bulletin import EBCategory
from stateside.models.profile import (
    CountryOfBirth,
    CurrentStatus,
    Education,
    Experience,
    FilterState,
    PriorityDate,
)
from stateside.monitor.renderer import TimelineRenderer

console = Console()


def _priority_date(value: str | None) -> PriorityDate | None:
    if value is None:
        return None
    try:
        year, month = (int(part) for part in value.split("-"))
        return PriorityDate(year=year, month=month)
    except ValueError as exc:
        raise typer.BadParameter(f"not a priority date: {value!r} (expected YYYY-MM)") from exc


def paths_cmd(
    profile_file: Path = typer.Option(
        None,
        "--profile",
        "-p",
        help="JSON file with the applicant profile (overrides profile options).",
    ),
    status: CurrentStatus = typer.Option(
        CurrentStatus.OUTSIDE_US, "--status", "-s", help="Current immigration status."
    ),
    education: Education = typer.Option(
        Education.BACHELORS, "--education", "-e", help="Highest degree."
    ),
    experience: Experience = typer.Option(
        Experience.LT2, "--experience", "-x", help="Years of work experience."
    ),
    stem: bool = typer.Option(False, "--stem", help="Degree is in a STEM field."),
    country: CountryOfBirth = typer.Option(
        CountryOfBirth.OTHER, "--country", "-c", help="Country of birth (chargeability)."
    ),
    ca_mx_citizen: bool = typer.Option(
        False, "--ca-mx-citizen", help="Canadian or Mexican citizen (TN eligible)."
    ),
    extraordinary: bool = typer.Option(
        False, "--extraordinary", help="Extraordinary ability (EB-1A / O-1)."
    ),
    researcher: bool = typer.Option(
        False, "--researcher", help="Outstanding professor or researcher (EB-1B)."
    ),
    executive: bool = typer.Option(
        False, "--executive", help="Multinational manager or executive (EB-1C / L-1A)."
    ),
    married_usc: bool = typer.Option(
        False, "--married-usc", help="Married to a U.S. citizen."
    ),
    investor: bool = typer.Option(
        False, "--investor", help="Has EB-5 investment capital."
    ),
    approved_i140: bool = typer.Option(
        False, "--approved-i140", help="Already has an approved I-140."
    ),
    pd: str = typer.Option(
        None, "--pd", help="Existing priority date as YYYY-MM."
    ),
    pd_category: EBCategory = typer.Option(
        None, "--pd-category", help="Category of the existing priority date."
    ),
    new_perm: bool = typer.Option(
        False, "--new-perm", help="Changing employers: PERM and I-140 must be redone."
    ),
    premium: bool = typer.Option(
        False, "--premium", "-P", help="Use premium processing where available."
    ),
    audit: bool = typer.Option(
        False, "--audit", "-A", help="Assume the PERM application is audited."
    ),
    live: bool = typer.Option(
        False, "--live", "-L", help="Fetch live processing times and bulletin charts."
    ),
    as_of: str = typer.Option(
        None, "--as-of", help="Project from this date (YYYY-MM-DD). Defaults to today."
    ),
) -> None:
    """Show every green-card pathway open to a profile."""
    if profile_file is not None:
        profile = load_profile(profile_file)
    else:
        profile = FilterState(
            current_status=status,
            education=education,
            experience=experience,
            is_stem=stem,
            country_of_birth=country,
            is_canadian_or_mexican_citizen=ca_mx_citizen,
            has_extraordinary_ability=extraordinary,
            is_outstanding_researcher=researcher,
            is_executive=executive,
            is_married_to_us_citizen=married_usc,
            has_investment_capital=investor,
            has_approved_i140=approved_i140,
            existing_priority_date=_priority_date(pd),
            existing_priority_date_category=pd_category,
            needs_new_perm=new_perm,
        )

    engine = build_engine(live)
    projection = engine.project(
        profile,
        parse_as_of(as_of),
        ComposeOptions(premium_processing=premium, assume_perm_audit=audit),
    )

    renderer = TimelineRenderer(console=console)
    renderer.print_projection(projection)
    if projection.uses_default_data:
        console.print(
            "[yellow]Using built-in default data for:[/yellow] "
            + ", ".join(projection.defaulted_fields)
        )
    console.print(f"[dim]Input fingerprint: {projection.input_hash[:16]}[/dim]")
