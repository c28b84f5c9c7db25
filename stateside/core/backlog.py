"""Backlog projection — the single cutoff-comparison routine.

Both the composer (planning a fresh path) and the reconciler (re-estimating a
tracked case) ask the same question: given a priority date and today's two
bulletin charts, is there a wait, what kind, and how long?  Both call
``project_wait`` so the answer cannot drift between them.
"""

from __future__ import annotations

from collections.abc import Callable

from pydantic import BaseModel, ConfigDict

from stateside.config import config
from stateside.core.velocity import MIN_PROJECTION_RATE, VelocityEstimate
from stateside.models.bulletin import (
    Chargeability,
    Current,
    Cutoff,
    EBCategory,
    MonthIndex,
    format_month_index,
)
from stateside.models.paths import DurationRange, VelocityInfo, WaitKind
from stateside.models.processing import ImmigrationDataSnapshot

# Rate band half-width: 15% at full confidence, 65% at zero confidence.
_BASE_SPREAD = 0.15
_CONFIDENCE_SPREAD = 0.5


class WaitProjection(BaseModel):
    """Outcome of comparing one priority date against both charts."""

    model_config = ConfigDict(frozen=True)

    priority_date: MonthIndex
    final_action: Current | Cutoff
    dates_for_filing: Current | Cutoff
    fad_reached: bool
    dff_reached: bool
    kind: WaitKind | None = None
    months_behind: int = 0
    duration: DurationRange = DurationRange()
    velocity_info: VelocityInfo | None = None

    @property
    def needs_wait(self) -> bool:
        return self.kind is not None

    @property
    def concurrent_filing_eligible(self) -> bool:
        """The I-485 can be filed with the petition: Final Action is reached."""
        return self.fad_reached


class BacklogContext:
    """Everything needed to size a wait: both charts plus velocity.

    Shared by the composer and the reconciler so both answer the backlog
    question from the same snapshot.
    """

    def __init__(
        self,
        snapshot: ImmigrationDataSnapshot,
        velocity_lookup: Callable[[EBCategory, Chargeability], VelocityEstimate],
        disclosure_threshold: float | None = None,
    ) -> None:
        self._snapshot = snapshot
        self._velocity_lookup = velocity_lookup
        self._disclosure_threshold = disclosure_threshold

    @property
    def snapshot(self) -> ImmigrationDataSnapshot:
        return self._snapshot

    def velocity(self, category: EBCategory, chargeability: Chargeability) -> VelocityEstimate:
        return self._velocity_lookup(category, chargeability)

    def project(
        self,
        category: EBCategory,
        chargeability: Chargeability,
        priority_date: MonthIndex,
    ) -> WaitProjection:
        return project_wait(
            priority_date,
            self._snapshot.final_action.lookup(category, chargeability),
            self._snapshot.dates_for_filing.lookup(category, chargeability),
            self._velocity_lookup(category, chargeability),
            disclosure_threshold=self._disclosure_threshold,
        )


def project_wait(
    priority_date: MonthIndex,
    final_action: Current | Cutoff,
    dates_for_filing: Current | Cutoff,
    velocity: VelocityEstimate,
    disclosure_threshold: float | None = None,
) -> WaitProjection:
    """Compare a priority date against Final Action and Dates for Filing.

    * Final Action reached (or current) — no wait.
    * Only Dates for Filing reached — a ``filing`` wait: the I-485 can be
      filed now but not approved until Final Action reaches the date.
    * Neither reached — an ``approval`` wait sized by velocity.

    The wait is ``months_behind * 12 / rate`` months, with a range from a
    rate band that widens as velocity confidence drops.
    """
    threshold = (
        disclosure_threshold
        if disclosure_threshold is not None
        else config.confidence_disclosure_threshold
    )
    fad_reached = final_action.reaches(priority_date)
    dff_reached = dates_for_filing.reaches(priority_date)

    if fad_reached:
        return WaitProjection(
            priority_date=priority_date,
            final_action=final_action,
            dates_for_filing=dates_for_filing,
            fad_reached=True,
            dff_reached=True,
        )

    behind = final_action.months_behind(priority_date)
    rate = max(velocity.rate_months_per_year, MIN_PROJECTION_RATE)
    spread = _BASE_SPREAD + _CONFIDENCE_SPREAD * (1.0 - velocity.confidence)
    fast = rate * (1.0 + spread)
    slow = max(MIN_PROJECTION_RATE, rate * (1.0 - spread))

    expected_months = behind * 12 / rate
    range_min = behind * 12 / fast
    range_max = behind * 12 / slow

    kind = WaitKind.FILING if dff_reached else WaitKind.APPROVAL
    explanation = (
        f"Priority date {format_month_index(priority_date)} is {behind} months behind "
        f"the Final Action cutoff ({final_action.display}). {velocity.explanation}; "
        f"expected wait ~{expected_months / 12:.1f} years"
    )

    return WaitProjection(
        priority_date=priority_date,
        final_action=final_action,
        dates_for_filing=dates_for_filing,
        fad_reached=False,
        dff_reached=dff_reached,
        kind=kind,
        months_behind=behind,
        duration=DurationRange.from_months(range_min, range_max),
        velocity_info=VelocityInfo(
            rate_months_per_year=round(rate, 2),
            explanation=explanation,
            confidence=velocity.confidence,
            range_min_months=round(range_min, 1),
            range_max_months=round(range_max, 1),
            is_fallback=velocity.is_fallback,
            needs_disclosure=velocity.confidence < threshold,
        ),
    )
