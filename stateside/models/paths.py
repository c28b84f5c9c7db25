"""Composed timeline models — the composer's output."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, model_validator

from stateside.models.bulletin import Chargeability, EBCategory, MonthIndex
from stateside.models.stages import Track


def _fmt(value: float) -> str:
    text = f"{value:.1f}"
    return text[:-2] if text.endswith(".0") else text


class DurationRange(BaseModel):
    """A duration range in years."""

    model_config = ConfigDict(frozen=True)

    min_years: float = 0.0
    max_years: float = 0.0

    @model_validator(mode="after")
    def _ordered(self) -> DurationRange:
        if self.min_years < 0 or self.max_years < self.min_years:
            raise ValueError(f"Invalid duration range {self.min_years}-{self.max_years}")
        return self

    @classmethod
    def from_months(cls, min_months: float, max_months: float) -> DurationRange:
        return cls(min_years=round(min_months / 12, 4), max_years=round(max_months / 12, 4))

    @classmethod
    def from_days(cls, days: int) -> DurationRange:
        years = round(days / 365, 4)
        return cls(min_years=years, max_years=years)

    @property
    def min_months(self) -> float:
        return self.min_years * 12

    @property
    def max_months(self) -> float:
        return self.max_years * 12

    @property
    def is_zero(self) -> bool:
        return self.max_years == 0

    @property
    def display(self) -> str:
        """Human-readable form: days, months, or years depending on scale."""
        if self.is_zero:
            return "0 mo"
        if self.max_months < 1.5:
            days = round(self.max_years * 365)
            return f"{days} days"
        if self.max_months < 24:
            lo, hi = round(self.min_months, 1), round(self.max_months, 1)
            return f"{_fmt(hi)} mo" if lo == hi else f"{_fmt(lo)}-{_fmt(hi)} mo"
        lo, hi = round(self.min_years, 1), round(self.max_years, 1)
        return f"{_fmt(hi)} yr" if lo == hi else f"{_fmt(lo)}-{_fmt(hi)} yr"


class WaitKind(str, Enum):
    """Why a priority-date wait stage exists."""

    FILING = "filing"  # Dates for Filing reached; waiting on Final Action
    APPROVAL = "approval"  # neither chart reached


class VelocityInfo(BaseModel):
    """Disclosure payload attached to a backlog wait stage."""

    model_config = ConfigDict(frozen=True)

    rate_months_per_year: float
    explanation: str
    confidence: float
    range_min_months: float
    range_max_months: float
    is_fallback: bool = False
    needs_disclosure: bool = False


class ComposedStage(BaseModel):
    """One dated stage of a composed path."""

    model_config = ConfigDict(frozen=True)

    node_id: str
    display_name: str
    track: Track
    start_years: float
    duration: DurationRange
    is_priority_wait: bool = False
    is_concurrent: bool = False
    after: str | None = None
    note: str | None = None
    priority_date_str: str | None = None
    velocity_info: VelocityInfo | None = None
    wait_kind: WaitKind | None = None

    @property
    def end_years(self) -> float:
        return round(self.start_years + self.duration.max_years, 4)

    @property
    def is_terminal(self) -> bool:
        return self.node_id == "gc"


class ComposedPath(BaseModel):
    """A fully dated pathway: ordered stages across both tracks."""

    model_config = ConfigDict(frozen=True)

    path_id: str
    name: str
    stages: tuple[ComposedStage, ...]
    total_years: DurationRange
    estimated_cost: int
    gc_category: str
    eb_category: EBCategory | None = None
    chargeability: Chargeability = Chargeability.ALL_OTHER
    has_lottery: bool = False
    is_self_petition: bool = False
    concurrent_filing_eligible: bool = False
    priority_date: MonthIndex | None = None
    priority_date_str: str | None = None
    priority_date_is_existing: bool = False
    uses_default_data: bool = False

    def stages_on(self, track: Track) -> list[ComposedStage]:
        return [s for s in self.stages if s.track == track]

    def get_stage(self, node_id: str) -> ComposedStage | None:
        return next((s for s in self.stages if s.node_id == node_id), None)

    @property
    def wait_stage(self) -> ComposedStage | None:
        return next((s for s in self.stages if s.is_priority_wait), None)

    @property
    def node_ids(self) -> list[str]:
        return [s.node_id for s in self.stages]
