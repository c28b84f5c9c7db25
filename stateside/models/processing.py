"""Processing-time models and the canonical data snapshot."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, model_validator

from stateside.models.bulletin import MonthIndex, PriorityDateTable


class FormKey(str, Enum):
    """Agency forms/stages that carry processing times."""

    PWD = "PWD"
    PERM = "PERM"
    PERM_AUDIT = "PERM-audit"
    I140 = "I-140"
    I485 = "I-485"
    I765 = "I-765"
    I130 = "I-130"
    I129 = "I-129"


class FormTiming(BaseModel):
    """Processing time range in months, plus premium processing if offered."""

    model_config = ConfigDict(frozen=True)

    min_months: float
    max_months: float
    premium_days: int | None = None

    @model_validator(mode="after")
    def _ordered(self) -> FormTiming:
        if self.min_months < 0 or self.max_months < self.min_months:
            raise ValueError(
                f"Invalid processing range {self.min_months}-{self.max_months} months"
            )
        return self


class ProcessingTimes(BaseModel):
    """Timings keyed by form.  Complete after adaptation — no missing keys."""

    model_config = ConfigDict(frozen=True)

    timings: dict[FormKey, FormTiming]

    def get(self, form: FormKey) -> FormTiming:
        return self.timings[form]


class ImmigrationDataSnapshot(BaseModel):
    """One read-only snapshot of agency timings and both bulletin charts.

    ``uses_defaults`` is set whenever any field came from static defaults;
    ``defaulted_fields`` names them so consumers can disclose it.
    """

    model_config = ConfigDict(frozen=True)

    processing_times: ProcessingTimes
    final_action: PriorityDateTable
    dates_for_filing: PriorityDateTable
    uses_defaults: bool = False
    defaulted_fields: tuple[str, ...] = ()
    fetched_at: datetime | None = None
    bulletin_month: MonthIndex | None = None  # the bulletin the charts come from, when stated
