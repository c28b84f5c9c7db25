"""Input loading shared by the CLI commands.

Everything here runs at the boundary: reading files, parsing dates the user
typed and deciding whether to go to the network.  Bad input is reported as
``typer.BadParameter`` so Typer prints a usage error and exits with code 2.
"""

from __future__ import annotations

import json
import logging
from datetime import date
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError

from stateside.bridge.live_data import LiveDataClient, load_snapshot
from stateside.config import ProdConfig
from stateside.core.engine import TimelineEngine
from stateside.models.case import ValidDate, parse_user_date
from stateside.models.processing import ImmigrationDataSnapshot
from stateside.models.profile import FilterState

logger = logging.getLogger(__name__)


def parse_as_of(value: str | None) -> date:
    """The projection date: today unless ``--as-of`` names a valid day."""
    if value is None:
        return date.today()
    parsed = parse_user_date(value)
    if not isinstance(parsed, ValidDate):
        raise typer.BadParameter(f"not a date: {value!r} (expected YYYY-MM-DD)")
    return parsed.value


def read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise typer.BadParameter(f"cannot read {path}: {exc.strerror or exc}") from exc
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"{path} is not valid JSON: {exc.msg}") from exc


def load_profile(path: Path) -> FilterState:
    try:
        return FilterState.model_validate(read_json(path))
    except ValidationError as exc:
        raise typer.BadParameter(
            f"{path} is not a valid profile ({exc.error_count()} error(s))"
        ) from exc


def load_data(live: bool, prod_config: ProdConfig | None = None) -> ImmigrationDataSnapshot | None:
    """Live snapshot when asked for, else ``None`` (static defaults)."""
    if not live:
        return None
    with LiveDataClient(prod_config=prod_config) as client:
        return load_snapshot(client)


def build_engine(live: bool, prod_config: ProdConfig | None = None) -> TimelineEngine:
    snapshot = load_data(live, prod_config)
    logger.debug("Building engine (live=%s)", live)
    return TimelineEngine(snapshot, prod_config=prod_config)
