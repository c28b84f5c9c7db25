"""Visa-bulletin velocity — how fast a Final Action cutoff advances.

Velocity is measured in months of cutoff movement per calendar year.  A
cutoff that keeps pace with the calendar moves 12 months per year; a
backlogged category typically moves far less.  The model works on a
``HistoricalBulletinSeries`` and reports a rate plus a confidence in [0, 1]
so callers can disclose how much the projection should be trusted.

The model never reads the clock: ``as_of`` is passed in.
"""

from __future__ import annotations

import logging
import statistics
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict

from stateside.config import config
from stateside.models.bulletin import (
    BulletinSample,
    Chargeability,
    Current,
    Cutoff,
    EBCategory,
    HistoricalBulletinSeries,
    MonthIndex,
)

logger = logging.getLogger(__name__)

REAL_TIME_RATE = 12.0
MIN_PROJECTION_RATE = 1.0
FALLBACK_CONFIDENCE = 0.25

# Confidence tuning
_FULL_COUNT_DELTAS = 6
_FRESH_MONTHS = 3
_DECAY_MONTHS = 24
_FRESHNESS_FLOOR = 0.3


class VelocityEstimate(BaseModel):
    """Advancement rate for one (category, chargeability) pair."""

    model_config = ConfigDict(frozen=True)

    category: EBCategory
    chargeability: Chargeability
    rate_months_per_year: float  # projection rate, floored
    raw_rate: float  # observed rate, may be <= 0 on retrogression
    confidence: float
    sample_count: int
    is_current: bool = False
    is_fallback: bool = False
    explanation: str = ""


def freshness_factor(latest_bulletin: MonthIndex, as_of: MonthIndex) -> float:
    """1.0 within three months of ``as_of``, decaying linearly to 0.3."""
    age = as_of - latest_bulletin
    if age <= _FRESH_MONTHS:
        return 1.0
    decayed = 1.0 - (1.0 - _FRESHNESS_FLOOR) * (age - _FRESH_MONTHS) / _DECAY_MONTHS
    return max(_FRESHNESS_FLOOR, decayed)


def _consistency_factor(interval_rates: list[float]) -> float:
    if len(interval_rates) < 2:
        return 1.0
    mean = statistics.fmean(interval_rates)
    spread = statistics.pstdev(interval_rates)
    if mean == 0:
        return 1.0 if spread == 0 else 0.0
    return 1.0 / (1.0 + spread / abs(mean))


class VelocityModel:
    """Estimate cutoff advancement from bulletin history.

    Parameters
    ----------
    window:
        Number of most recent dated samples (after the last time the chart
        was current) to measure over.
    fallback_rate:
        Rate used when the history cannot support an estimate.
    """

    def __init__(
        self,
        window: int | None = None,
        fallback_rate: float | None = None,
    ) -> None:
        self._window = max(2, window if window is not None else config.velocity_window)
        self._fallback_rate = (
            fallback_rate
            if fallback_rate is not None
            else config.fallback_velocity_months_per_year
        )

    @property
    def window(self) -> int:
        return self._window

    def estimate(
        self, series: HistoricalBulletinSeries, as_of: MonthIndex
    ) -> VelocityEstimate:
        """Compute the velocity estimate for one series."""
        samples = series.ordered()
        category, chargeability = series.category, series.chargeability
        label = f"{category.label} {chargeability.label}"

        if not samples:
            return self._fallback(series, 0, f"No bulletin history for {label}")

        latest = samples[-1]
        if isinstance(latest.cutoff, Current):
            return VelocityEstimate(
                category=category,
                chargeability=chargeability,
                rate_months_per_year=REAL_TIME_RATE,
                raw_rate=REAL_TIME_RATE,
                confidence=round(freshness_factor(latest.bulletin_month, as_of), 4),
                sample_count=len(samples),
                is_current=True,
                explanation=f"{label} is current: no backlog",
            )

        window = self._dated_window(samples)
        if len(window) < 2:
            return self._fallback(
                series, len(window), f"Too little dated history for {label}"
            )

        first, last = window[0], window[-1]
        span = last.bulletin_month - first.bulletin_month
        if span <= 0:
            return self._fallback(series, len(window), f"No bulletin span for {label}")

        moved = _cutoff_index(last) - _cutoff_index(first)
        raw_rate = moved / span * 12
        interval_rates = [
            (_cutoff_index(b) - _cutoff_index(a)) / (b.bulletin_month - a.bulletin_month) * 12
            for a, b in zip(window, window[1:])
        ]

        count = min(1.0, len(interval_rates) / _FULL_COUNT_DELTAS)
        confidence = (
            count
            * _consistency_factor(interval_rates)
            * freshness_factor(last.bulletin_month, as_of)
        )
        confidence = round(min(1.0, max(0.0, confidence)), 4)

        rate = max(raw_rate, MIN_PROJECTION_RATE)
        if raw_rate < MIN_PROJECTION_RATE:
            explanation = (
                f"{label} has stalled or retrogressed over the last {span} bulletins; "
                f"projecting at the {MIN_PROJECTION_RATE:g} mo/yr floor"
            )
        else:
            explanation = (
                f"{label} advanced {moved} months over the last {span} bulletins "
                f"(~{raw_rate:.1f} months per year)"
            )

        logger.debug(
            "Velocity %s: rate=%.2f raw=%.2f confidence=%.2f samples=%d",
            label, rate, raw_rate, confidence, len(window),
        )
        return VelocityEstimate(
            category=category,
            chargeability=chargeability,
            rate_months_per_year=round(rate, 4),
            raw_rate=round(raw_rate, 4),
            confidence=confidence,
            sample_count=len(window),
            explanation=explanation,
        )

    def estimate_all(
        self,
        history: Mapping[tuple[EBCategory, Chargeability], HistoricalBulletinSeries],
        as_of: MonthIndex,
    ) -> dict[tuple[EBCategory, Chargeability], VelocityEstimate]:
        """Estimate every pair.  Pairs missing from ``history`` get the fallback."""
        result: dict[tuple[EBCategory, Chargeability], VelocityEstimate] = {}
        for category in EBCategory:
            for chargeability in Chargeability:
                series = history.get(
                    (category, chargeability),
                    HistoricalBulletinSeries(category=category, chargeability=chargeability),
                )
                result[(category, chargeability)] = self.estimate(series, as_of)
        return result

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _dated_window(self, samples: list[BulletinSample]) -> list[BulletinSample]:
        last_current = -1
        for i, sample in enumerate(samples):
            if isinstance(sample.cutoff, Current):
                last_current = i
        dated = samples[last_current + 1:]
        return dated[-self._window:]

    def _fallback(
        self, series: HistoricalBulletinSeries, sample_count: int, reason: str
    ) -> VelocityEstimate:
        logger.warning(
            "%s; using fallback velocity %.1f mo/yr", reason, self._fallback_rate
        )
        return VelocityEstimate(
            category=series.category,
            chargeability=series.chargeability,
            rate_months_per_year=max(self._fallback_rate, MIN_PROJECTION_RATE),
            raw_rate=self._fallback_rate,
            confidence=FALLBACK_CONFIDENCE,
            sample_count=sample_count,
            is_fallback=True,
            explanation=(
                f"{reason}; assuming a conservative "
                f"{self._fallback_rate:g} months of movement per year"
            ),
        )


def _cutoff_index(sample: BulletinSample) -> MonthIndex:
    cutoff = sample.cutoff
    assert isinstance(cutoff, Cutoff)
    return cutoff.month_index
