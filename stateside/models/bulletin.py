"""Visa bulletin models — cutoff values, chart tables, historical series.

The "current" sentinel has exactly one representation: ``Current``.  A cutoff
that has a date is a ``Cutoff`` carrying a linear month index.  Code that
needs to know whether a chart is current checks ``cutoff.is_current``; nothing
compares strings.
"""

from __future__ import annotations

import re
from datetime import date
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

# Linear month index: year * 12 + (month - 1).  Epoch is January of year 0.
MonthIndex = int

_MONTHS: dict[str, int] = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}
_MONTH_ABBR = {v: k.title() for k, v in _MONTHS.items()}

_MON_YYYY_RE = re.compile(r"^([a-z]{3})[a-z]*\.?\s*,?\s*(\d{4})$", re.IGNORECASE)
_BULLETIN_RE = re.compile(r"^(\d{2})([a-z]{3})(\d{2})$", re.IGNORECASE)
_CURRENT_TOKENS = frozenset({"current", "c"})


class EBCategory(str, Enum):
    """Employment-based preference categories that have bulletin charts."""

    EB1 = "eb1"
    EB2 = "eb2"
    EB3 = "eb3"

    @property
    def label(self) -> str:
        return f"EB-{self.value[-1]}"


class Chargeability(str, Enum):
    """Bulletin chargeability columns."""

    INDIA = "india"
    CHINA = "china"
    ALL_OTHER = "all_other"

    @property
    def label(self) -> str:
        return {"india": "India", "china": "China", "all_other": "All Other"}[self.value]


# ---------------------------------------------------------------------------
# Month index helpers
# ---------------------------------------------------------------------------


def month_index(year: int, month: int) -> MonthIndex:
    """Convert a calendar (year, month) to a linear month index."""
    return year * 12 + (month - 1)


def month_index_of(d: date) -> MonthIndex:
    return month_index(d.year, d.month)


def month_index_to_date(index: MonthIndex) -> date:
    """First day of the month a month index refers to."""
    return date(index // 12, index % 12 + 1, 1)


def format_month_index(index: MonthIndex) -> str:
    """Format a month index as ``"Mon YYYY"``."""
    return f"{_MONTH_ABBR[index % 12 + 1]} {index // 12}"


# ---------------------------------------------------------------------------
# Cutoff values (tagged union)
# ---------------------------------------------------------------------------


class Current(BaseModel):
    """The chart is current: every priority date qualifies."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["current"] = "current"

    @property
    def is_current(self) -> bool:
        return True

    def reaches(self, priority_date: MonthIndex) -> bool:
        return True

    def months_behind(self, priority_date: MonthIndex) -> int:
        return 0

    @property
    def display(self) -> str:
        return "Current"


class Cutoff(BaseModel):
    """A dated cutoff: priority dates in or before the cutoff month qualify."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["cutoff"] = "cutoff"
    month_index: MonthIndex

    @property
    def is_current(self) -> bool:
        return False

    def reaches(self, priority_date: MonthIndex) -> bool:
        return priority_date <= self.month_index

    def months_behind(self, priority_date: MonthIndex) -> int:
        """How many months the cutoff must still advance to reach the date."""
        return max(0, priority_date - self.month_index)

    @property
    def display(self) -> str:
        return format_month_index(self.month_index)


CutoffValue = Annotated[Union[Current, Cutoff], Field(discriminator="kind")]

CURRENT = Current()


def parse_cutoff(text: str | None) -> Current | Cutoff | None:
    """Parse a bulletin cutoff string.

    Accepts ``"current"``/``"C"`` (case-insensitive), ``"Mon YYYY"``, full
    month names (``"July 2013"``) and the bulletin's own ``"01JAN13"`` form.
    Returns ``None`` for anything else, including ``"U"`` (unavailable).
    """
    if text is None:
        return None
    cleaned = str(text).strip()
    if not cleaned:
        return None
    if cleaned.lower() in _CURRENT_TOKENS:
        return CURRENT

    match = _MON_YYYY_RE.match(cleaned)
    if match:
        month = _MONTHS.get(match.group(1).lower())
        if month is None:
            return None
        return Cutoff(month_index=month_index(int(match.group(2)), month))

    match = _BULLETIN_RE.match(cleaned)
    if match:
        month = _MONTHS.get(match.group(2).lower())
        if month is None:
            return None
        year = 2000 + int(match.group(3))
        return Cutoff(month_index=month_index(year, month))

    return None


# ---------------------------------------------------------------------------
# Chart tables
# ---------------------------------------------------------------------------


class ChargeabilityRow(BaseModel):
    """One EB category row of a bulletin chart."""

    model_config = ConfigDict(frozen=True)

    india: CutoffValue = CURRENT
    china: CutoffValue = CURRENT
    all_other: CutoffValue = CURRENT

    def get(self, chargeability: Chargeability) -> Current | Cutoff:
        return getattr(self, chargeability.value)


class PriorityDateTable(BaseModel):
    """A Final Action Dates or Dates for Filing chart."""

    model_config = ConfigDict(frozen=True)

    eb1: ChargeabilityRow = ChargeabilityRow()
    eb2: ChargeabilityRow = ChargeabilityRow()
    eb3: ChargeabilityRow = ChargeabilityRow()

    def lookup(self, category: EBCategory, chargeability: Chargeability) -> Current | Cutoff:
        row: ChargeabilityRow = getattr(self, category.value)
        return row.get(chargeability)


# ---------------------------------------------------------------------------
# Historical series
# ---------------------------------------------------------------------------


class BulletinSample(BaseModel):
    """One bulletin month's Final Action cutoff for a category/country pair."""

    model_config = ConfigDict(frozen=True)

    bulletin_month: MonthIndex
    cutoff: CutoffValue


class HistoricalBulletinSeries(BaseModel):
    """Ordered Final Action history for one (category, chargeability) pair.

    Append-only: ``appended()`` returns a new series and refuses samples that
    would go back in time.
    """

    model_config = ConfigDict(frozen=True)

    category: EBCategory
    chargeability: Chargeability
    samples: tuple[BulletinSample, ...] = ()

    def ordered(self) -> list[BulletinSample]:
        return sorted(self.samples, key=lambda s: s.bulletin_month)

    def appended(self, sample: BulletinSample) -> HistoricalBulletinSeries:
        if self.samples and sample.bulletin_month <= max(
            s.bulletin_month for s in self.samples
        ):
            raise ValueError(
                f"Sample for {format_month_index(sample.bulletin_month)} is not "
                f"newer than the latest sample in {self.category.label} "
                f"{self.chargeability.label}"
            )
        return self.model_copy(update={"samples": self.samples + (sample,)})

    @property
    def key(self) -> tuple[EBCategory, Chargeability]:
        return (self.category, self.chargeability)
