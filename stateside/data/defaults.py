"""Static fallback data used whenever live data is missing or malformed.

Values approximate the October 2025 visa bulletin and published agency
processing times.  They are a floor for completeness, not a source of truth:
any snapshot built from them is marked ``uses_defaults``.
"""

from __future__ import annotations

from stateside.models.bulletin import (
    CURRENT,
    ChargeabilityRow,
    Cutoff,
    PriorityDateTable,
    month_index,
)
from stateside.models.processing import FormKey, FormTiming, ProcessingTimes


def _cutoff(year: int, month: int) -> Cutoff:
    return Cutoff(month_index=month_index(year, month))


DEFAULT_FORM_TIMINGS: dict[FormKey, FormTiming] = {
    FormKey.PWD: FormTiming(min_months=5, max_months=7),
    FormKey.PERM: FormTiming(min_months=14, max_months=17),
    FormKey.PERM_AUDIT: FormTiming(min_months=20, max_months=24),
    FormKey.I140: FormTiming(min_months=6, max_months=9, premium_days=15),
    FormKey.I485: FormTiming(min_months=10, max_months=18),
    FormKey.I765: FormTiming(min_months=3, max_months=6),
    FormKey.I130: FormTiming(min_months=10, max_months=14),
    FormKey.I129: FormTiming(min_months=2, max_months=5, premium_days=15),
}

DEFAULT_PROCESSING_TIMES = ProcessingTimes(timings=DEFAULT_FORM_TIMINGS)

DEFAULT_FINAL_ACTION = PriorityDateTable(
    eb1=ChargeabilityRow(india=_cutoff(2022, 2), china=_cutoff(2022, 11), all_other=CURRENT),
    eb2=ChargeabilityRow(india=_cutoff(2013, 1), china=_cutoff(2020, 9), all_other=_cutoff(2024, 4)),
    eb3=ChargeabilityRow(india=_cutoff(2013, 11), china=_cutoff(2021, 5), all_other=_cutoff(2023, 4)),
)

DEFAULT_DATES_FOR_FILING = PriorityDateTable(
    eb1=ChargeabilityRow(india=_cutoff(2022, 4), china=_cutoff(2023, 8), all_other=CURRENT),
    eb2=ChargeabilityRow(india=_cutoff(2013, 5), china=_cutoff(2022, 1), all_other=_cutoff(2024, 10)),
    eb3=ChargeabilityRow(india=_cutoff(2014, 8), china=_cutoff(2022, 1), all_other=_cutoff(2023, 7)),
)

# Filing-fee table for forms that are not catalog stages (shown in notes).
AUXILIARY_FEES_USD: dict[FormKey, int] = {
    FormKey.I765: 260,
    FormKey.I129: 780,
}
