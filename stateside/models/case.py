"""Case-tracking models — user-entered milestones and reconciliation output.

User input is free-form and frequently wrong.  Dates are therefore a sum
type: ``UnsetDate`` (nothing entered), ``InvalidDate`` (something entered
that is not a date) and ``ValidDate``.  Parsing never raises; consumers
decide what an invalid date means for them.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from datetime import date, datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from stateside.models.bulletin import EBCategory, MonthIndex, format_month_index
from stateside.models.paths import DurationRange
from stateside.models.stages import Track

logger = logging.getLogger(__name__)

RECEIPT_NUMBER_RE = re.compile(r"^[A-Z]{3}\d{10}$", re.IGNORECASE)

_ISO_DAY_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_ISO_MONTH_RE = re.compile(r"^(\d{4})-(\d{1,2})$")
_US_DAY_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")


# ---------------------------------------------------------------------------
# DateField sum type
# ---------------------------------------------------------------------------


class UnsetDate(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["unset"] = "unset"

    @property
    def value(self) -> None:
        return None


class InvalidDate(BaseModel):
    """Something was entered but it is not a usable date."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["invalid"] = "invalid"
    raw: str

    @property
    def value(self) -> None:
        return None


class ValidDate(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["valid"] = "valid"
    value: date


DateField = Annotated[Union[UnsetDate, InvalidDate, ValidDate], Field(discriminator="kind")]

UNSET = UnsetDate()


def parse_user_date(raw: Any) -> UnsetDate | InvalidDate | ValidDate:
    """Parse a user-entered date.

    Accepts ``YYYY-MM-DD``, ``YYYY-MM`` (first of the month), ``MM/DD/YYYY``
    and ``date``/``datetime`` objects.  Blank input is ``UnsetDate``;
    anything else that does not describe a real calendar day is
    ``InvalidDate``.  Never raises.
    """
    if isinstance(raw, (UnsetDate, InvalidDate, ValidDate)):
        return raw
    if raw is None:
        return UNSET
    if isinstance(raw, datetime):
        return ValidDate(value=raw.date())
    if isinstance(raw, date):
        return ValidDate(value=raw)
    if not isinstance(raw, str):
        return InvalidDate(raw=repr(raw))

    text = raw.strip()
    if not text:
        return UNSET

    parts: tuple[int, int, int] | None = None
    match = _ISO_DAY_RE.match(text)
    if match:
        parts = (int(match.group(1)), int(match.group(2)), int(match.group(3)))
    elif (match := _ISO_MONTH_RE.match(text)) is not None:
        parts = (int(match.group(1)), int(match.group(2)), 1)
    elif (match := _US_DAY_RE.match(text)) is not None:
        parts = (int(match.group(3)), int(match.group(1)), int(match.group(2)))

    if parts is None:
        return InvalidDate(raw=text)
    try:
        return ValidDate(value=date(*parts))
    except ValueError:
        return InvalidDate(raw=text)


def _coerce_date_field(value: Any) -> Any:
    if isinstance(value, Mapping) and "kind" in value:
        return value
    return parse_user_date(value)


def normalize_receipt_number(raw: Any) -> str | None:
    """Upper-cased receipt number, or ``None`` if it is not well formed."""
    if not isinstance(raw, str):
        return None
    text = raw.strip().upper()
    return text if RECEIPT_NUMBER_RE.match(text) else None


# ---------------------------------------------------------------------------
# Tracked case (input)
# ---------------------------------------------------------------------------


class MilestoneStatus(str, Enum):
    NOT_STARTED = "not_started"
    FILED = "filed"
    APPROVED = "approved"
    DENIED = "denied"


class Milestone(BaseModel):
    """What the user recorded for one stage of their case."""

    model_config = ConfigDict(frozen=True)

    status: MilestoneStatus = MilestoneStatus.NOT_STARTED
    filed_date: DateField = UNSET
    approved_date: DateField = UNSET
    receipt_number: str | None = None
    priority_date: DateField = UNSET
    notes: str | None = None

    @field_validator("filed_date", "approved_date", "priority_date", mode="before")
    @classmethod
    def _parse_dates(cls, value: Any) -> Any:
        return _coerce_date_field(value)

    @field_validator("receipt_number", mode="before")
    @classmethod
    def _receipt(cls, value: Any) -> str | None:
        normalized = normalize_receipt_number(value)
        if value not in (None, "") and normalized is None:
            logger.debug("Dropping malformed receipt number %r", value)
        return normalized


class PortedPriorityDate(BaseModel):
    """A priority date carried over from an earlier approved I-140."""

    model_config = ConfigDict(frozen=True)

    priority_date: DateField = UNSET
    category: EBCategory | None = None
    source_approved_date: DateField = UNSET
    source_withdrawn_date: DateField = UNSET

    @field_validator("priority_date", "source_approved_date", "source_withdrawn_date", mode="before")
    @classmethod
    def _parse_dates(cls, value: Any) -> Any:
        return _coerce_date_field(value)


def _pick(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


# Spellings other trackers use for the same states.
_STATUS_ALIASES: dict[str, MilestoneStatus] = {
    "pending": MilestoneStatus.FILED,
    "in_progress": MilestoneStatus.FILED,
    "submitted": MilestoneStatus.FILED,
    "complete": MilestoneStatus.APPROVED,
    "completed": MilestoneStatus.APPROVED,
    "done": MilestoneStatus.APPROVED,
    "rejected": MilestoneStatus.DENIED,
}


def _parse_status(raw: Any, filed: Any, approved: Any) -> MilestoneStatus:
    if isinstance(raw, str):
        key = raw.strip().lower().replace("-", "_").replace(" ", "_")
        if key in _STATUS_ALIASES:
            return _STATUS_ALIASES[key]
        try:
            return MilestoneStatus(key)
        except ValueError:
            logger.debug("Unknown milestone status %r", raw)
    if isinstance(approved, ValidDate):
        return MilestoneStatus.APPROVED
    if isinstance(filed, ValidDate):
        return MilestoneStatus.FILED
    return MilestoneStatus.NOT_STARTED


def _parse_category(raw: Any) -> EBCategory | None:
    if not isinstance(raw, str):
        return None
    key = raw.strip().lower().replace("-", "")
    try:
        return EBCategory(key)
    except ValueError:
        return None


class TrackedCase(BaseModel):
    """The user's own record of their case, keyed by catalog node id."""

    model_config = ConfigDict(frozen=True)

    planned_path_id: str | None = None
    milestones: dict[str, Milestone] = Field(default_factory=dict)
    ported_priority_date: PortedPriorityDate | None = None

    def milestone(self, node_id: str) -> Milestone | None:
        return self.milestones.get(node_id)

    @classmethod
    def from_raw(cls, data: Any) -> TrackedCase:
        """Build a tracked case from free-form user data.

        Accepts camelCase or snake_case keys.  Entries that are not mappings
        are skipped; malformed dates become ``InvalidDate``; malformed
        receipt numbers are dropped.  Never raises.
        """
        if not isinstance(data, Mapping):
            return cls()

        planned = _pick(data, "planned_path_id", "plannedPathId", "pathId")
        milestones: dict[str, Milestone] = {}
        raw_milestones = _pick(data, "milestones", "stages")
        if isinstance(raw_milestones, Mapping):
            for node_id, entry in raw_milestones.items():
                if not isinstance(entry, Mapping):
                    logger.debug("Skipping non-mapping milestone %r", node_id)
                    continue
                filed = parse_user_date(_pick(entry, "filed_date", "filedDate"))
                approved = parse_user_date(_pick(entry, "approved_date", "approvedDate"))
                notes = _pick(entry, "notes", "note")
                milestones[str(node_id)] = Milestone(
                    status=_parse_status(_pick(entry, "status"), filed, approved),
                    filed_date=filed,
                    approved_date=approved,
                    receipt_number=_pick(entry, "receipt_number", "receiptNumber"),
                    priority_date=parse_user_date(
                        _pick(entry, "priority_date", "priorityDate")
                    ),
                    notes=notes if isinstance(notes, str) else None,
                )

        ported: PortedPriorityDate | None = None
        raw_ported = _pick(data, "ported_priority_date", "portedPriorityDate")
        if isinstance(raw_ported, Mapping):
            ported = PortedPriorityDate(
                priority_date=parse_user_date(
                    _pick(raw_ported, "priority_date", "priorityDate", "date")
                ),
                category=_parse_category(_pick(raw_ported, "category")),
                source_approved_date=parse_user_date(
                    _pick(raw_ported, "source_approved_date", "sourceApprovedDate")
                ),
                source_withdrawn_date=parse_user_date(
                    _pick(raw_ported, "source_withdrawn_date", "sourceWithdrawnDate")
                ),
            )

        return cls(
            planned_path_id=planned if isinstance(planned, str) else None,
            milestones=milestones,
            ported_priority_date=ported,
        )


# ---------------------------------------------------------------------------
# Reconciliation output
# ---------------------------------------------------------------------------


class StageProgress(str, Enum):
    DONE = "done"
    IN_PROGRESS = "in_progress"
    NOT_STARTED = "not_started"


class ReconciledStage(BaseModel):
    """A composed stage annotated with the user's actual progress."""

    model_config = ConfigDict(frozen=True)

    node_id: str
    display_name: str
    track: Track
    progress: StageProgress
    duration: DurationRange
    remaining: DurationRange
    start_years: float = 0.0  # offset from as_of in the remaining layout
    is_priority_wait: bool = False
    filed_date: date | None = None
    approved_date: date | None = None
    receipt_number: str | None = None
    note: str | None = None


def format_remaining(months: float) -> str:
    """``"~N months"`` under a year, ``"~X years"`` otherwise."""
    if months <= 0:
        return "Done"
    if months < 12:
        return f"~{max(1, round(months))} months"
    years = round(months / 12, 1)
    text = f"{years:.1f}".rstrip("0").rstrip(".")
    return f"~{text} years"


class ReconciledPath(BaseModel):
    """Per-stage progress, effective priority date and remaining time."""

    model_config = ConfigDict(frozen=True)

    path_id: str
    name: str
    stages: tuple[ReconciledStage, ...]
    effective_priority_date: MonthIndex | None = None
    priority_date_source: str | None = None
    remaining: DurationRange
    estimated_completion: date
    earliest_completion: date

    def get_stage(self, node_id: str) -> ReconciledStage | None:
        return next((s for s in self.stages if s.node_id == node_id), None)

    @property
    def effective_priority_date_str(self) -> str | None:
        if self.effective_priority_date is None:
            return None
        return format_month_index(self.effective_priority_date)

    @property
    def completed_count(self) -> int:
        return sum(1 for s in self.stages if s.progress == StageProgress.DONE)

    @property
    def remaining_display(self) -> str:
        return format_remaining(self.remaining.max_months)
