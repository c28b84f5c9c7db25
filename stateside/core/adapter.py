"""ProcessingTimeAdapter — raw live payload → canonical ``ImmigrationDataSnapshot``.

The live endpoint's shape has drifted over time (camelCase vs snake_case,
``"i140"`` vs ``"I-140"``, ``{min, max}`` vs ``{months}``).  This module is
the one place that knows about those spellings.  Everything downstream sees
a complete snapshot: any field that is missing or malformed is filled from
``stateside.data.defaults`` and named in ``defaulted_fields``.

Pure mapping; never raises on bad input.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from stateside.data.defaults import (
    DEFAULT_DATES_FOR_FILING,
    DEFAULT_FINAL_ACTION,
    DEFAULT_FORM_TIMINGS,
)
from stateside.models.bulletin import (
    Chargeability,
    ChargeabilityRow,
    Cutoff,
    EBCategory,
    MonthIndex,
    PriorityDateTable,
    month_index,
    parse_cutoff,
)
from stateside.models.processing import (
    FormKey,
    FormTiming,
    ImmigrationDataSnapshot,
    ProcessingTimes,
)

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]")

_PROCESSING_KEYS = ("processingTimes", "processing_times")
_FINAL_ACTION_KEYS = ("finalAction", "final_action", "priorityDates", "priority_dates")
_DATES_FOR_FILING_KEYS = ("datesForFiling", "dates_for_filing")
_BULLETIN_MONTH_KEYS = ("bulletinMonth", "bulletin_month", "visaBulletin", "visa_bulletin")

_ISO_MONTH_RE = re.compile(r"^(\d{4})-(\d{1,2})(?:-\d{1,2})?$")

_CHARGEABILITY_ALIASES: dict[str, Chargeability] = {
    "india": Chargeability.INDIA,
    "china": Chargeability.CHINA,
    "allother": Chargeability.ALL_OTHER,
    "row": Chargeability.ALL_OTHER,
    "rest": Chargeability.ALL_OTHER,
}


def _norm(key: Any) -> str:
    return _NON_ALNUM.sub("", str(key).lower())


_FORM_ALIASES: dict[str, FormKey] = {_norm(form.value): form for form in FormKey}


def _first(data: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value) or value < 0:
        return None
    return float(value)


# ------------------------------------------------------------------
# Processing times
# ------------------------------------------------------------------


def _parse_timing(raw: Any, default: FormTiming, label: str, defaulted: list[str]) -> FormTiming:
    if not isinstance(raw, Mapping):
        defaulted.append(label)
        return default

    fields = {_norm(k): v for k, v in raw.items()}
    lo = _number(fields.get("min", fields.get("minmonths")))
    hi = _number(fields.get("max", fields.get("maxmonths")))
    if lo is None and hi is None:
        single = _number(fields.get("months"))
        lo = hi = single
    elif lo is None or hi is None:
        lo = hi = lo if lo is not None else hi

    if lo is None or hi is None or hi < lo:
        defaulted.append(label)
        return default

    premium_raw = fields.get("premiumdays")
    premium = _number(premium_raw)
    if premium is not None and premium > 0:
        premium_days: int | None = int(premium)
    else:
        premium_days = default.premium_days
        if default.premium_days is not None:
            defaulted.append(f"{label}.premium_days")

    return FormTiming(min_months=lo, max_months=hi, premium_days=premium_days)


def _adapt_processing(raw: Any, defaulted: list[str]) -> ProcessingTimes:
    by_form: dict[FormKey, Any] = {}
    if isinstance(raw, Mapping):
        for key, value in raw.items():
            form = _FORM_ALIASES.get(_norm(key))
            if form is not None:
                by_form[form] = value
    else:
        defaulted.append("processing_times")
        return ProcessingTimes(timings=dict(DEFAULT_FORM_TIMINGS))

    timings = {
        form: _parse_timing(
            by_form.get(form), DEFAULT_FORM_TIMINGS[form], f"processing_times.{form.value}", defaulted
        )
        for form in FormKey
    }
    return ProcessingTimes(timings=timings)


# ------------------------------------------------------------------
# Bulletin charts
# ------------------------------------------------------------------


def _adapt_chart(raw: Any, default: PriorityDateTable, label: str, defaulted: list[str]) -> PriorityDateTable:
    if not isinstance(raw, Mapping):
        defaulted.append(label)
        return default

    rows_raw = {_norm(k): v for k, v in raw.items()}
    rows: dict[str, ChargeabilityRow] = {}
    for category in EBCategory:
        row_raw = rows_raw.get(category.value)
        default_row: ChargeabilityRow = getattr(default, category.value)
        cells_raw: dict[Chargeability, Any] = {}
        if isinstance(row_raw, Mapping):
            for key, value in row_raw.items():
                ch = _CHARGEABILITY_ALIASES.get(_norm(key))
                if ch is not None:
                    cells_raw[ch] = value

        cells = {}
        for ch in Chargeability:
            parsed = parse_cutoff(cells_raw.get(ch)) if isinstance(cells_raw.get(ch), str) else None
            if parsed is None:
                defaulted.append(f"{label}.{category.value}.{ch.value}")
                parsed = default_row.get(ch)
            cells[ch.value] = parsed
        rows[category.value] = ChargeabilityRow(**cells)

    return PriorityDateTable(**rows)


def _parse_timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _parse_bulletin_month(value: Any) -> MonthIndex | None:
    """``"2025-11"``, ``"2025-11-01"`` or ``"November 2025"``; else ``None``."""
    if not isinstance(value, str):
        return None
    text = value.strip()
    match = _ISO_MONTH_RE.match(text)
    if match:
        month = int(match.group(2))
        return month_index(int(match.group(1)), month) if 1 <= month <= 12 else None
    parsed = parse_cutoff(text)
    return parsed.month_index if isinstance(parsed, Cutoff) else None


# ------------------------------------------------------------------
# Public API
# ------------------------------------------------------------------


def adapt_snapshot(
    raw: Mapping[str, Any] | None,
    fetched_at: datetime | None = None,
) -> ImmigrationDataSnapshot:
    """Normalize a raw live-data payload into one canonical snapshot.

    Parameters
    ----------
    raw:
        The payload, either the endpoint's ``{"success": ..., "data": {...}}``
        envelope or the inner ``data`` mapping.  ``None`` means no live
        data at all.
    fetched_at:
        When the payload was fetched.  Defaults to the payload's own
        ``lastUpdated`` timestamp when present.

    Returns
    -------
    ImmigrationDataSnapshot
        Always complete.  ``uses_defaults`` is set if any field came from
        static defaults.
    """
    if raw is None or not isinstance(raw, Mapping):
        if raw is not None:
            logger.debug("Live payload is not a mapping: %r", type(raw).__name__)
        return ImmigrationDataSnapshot(
            processing_times=ProcessingTimes(timings=dict(DEFAULT_FORM_TIMINGS)),
            final_action=DEFAULT_FINAL_ACTION,
            dates_for_filing=DEFAULT_DATES_FOR_FILING,
            uses_defaults=True,
            defaulted_fields=("processing_times", "final_action", "dates_for_filing"),
            fetched_at=fetched_at,
        )

    data: Mapping[str, Any] = raw
    inner = raw.get("data")
    if isinstance(inner, Mapping):
        data = inner

    defaulted: list[str] = []
    processing = _adapt_processing(_first(data, _PROCESSING_KEYS), defaulted)
    final_action = _adapt_chart(
        _first(data, _FINAL_ACTION_KEYS), DEFAULT_FINAL_ACTION, "final_action", defaulted
    )
    dates_for_filing = _adapt_chart(
        _first(data, _DATES_FOR_FILING_KEYS), DEFAULT_DATES_FOR_FILING, "dates_for_filing", defaulted
    )

    for field in defaulted:
        logger.debug("Defaulted live-data field: %s", field)

    return ImmigrationDataSnapshot(
        processing_times=processing,
        final_action=final_action,
        dates_for_filing=dates_for_filing,
        uses_defaults=bool(defaulted),
        defaulted_fields=tuple(defaulted),
        fetched_at=fetched_at or _parse_timestamp(_first(data, ("lastUpdated", "last_updated"))),
        bulletin_month=_parse_bulletin_month(_first(data, _BULLETIN_MONTH_KEYS)),
    )
