"""Tests for VelocityModel — rates, confidence, fallbacks, retrogression."""

from __future__ import annotations

import logging

import pytest

from stateside.core.velocity import (
    FALLBACK_CONFIDENCE,
    MIN_PROJECTION_RATE,
    REAL_TIME_RATE,
    VelocityModel,
    freshness_factor,
)
from stateside.data.bulletin_history import DEFAULT_BULLETIN_HISTORY
from stateside.models.bulletin import Chargeability, EBCategory, month_index

LATEST = month_index(2025, 10)  # last bulletin produced by make_series with 13 samples


def _advancing(n: int = 13) -> list[tuple[int, int]]:
    return [(2020 + i // 12, i % 12 + 1) for i in range(n)]


@pytest.fixture
def model() -> VelocityModel:
    return VelocityModel(window=12, fallback_rate=6.0)


class TestCleanHistory:
    def test_real_time_movement_is_twelve(self, model, make_series):
        est = model.estimate(make_series(_advancing()), LATEST)
        assert est.rate_months_per_year == pytest.approx(12.0)
        assert est.raw_rate == pytest.approx(12.0)
        assert est.confidence >= 0.9
        assert not est.is_fallback
        assert not est.is_current

    def test_sample_count_is_window(self, model, make_series):
        est = model.estimate(make_series(_advancing()), LATEST)
        assert est.sample_count == 12

    def test_window_limits_history(self, make_series):
        series = make_series(
            [(2020, 1), (2021, 1), (2022, 1), (2022, 2), (2022, 3)],
            start=(2025, 6),
        )
        narrow = VelocityModel(window=3, fallback_rate=6.0).estimate(series, LATEST)
        wide = VelocityModel(window=12, fallback_rate=6.0).estimate(series, LATEST)
        assert narrow.rate_months_per_year == pytest.approx(12.0)
        assert wide.rate_months_per_year > 12.0

    def test_window_has_a_floor_of_two(self):
        assert VelocityModel(window=1).window == 2


class TestCurrentCharts:
    def test_latest_current_is_real_time(self, model, make_series):
        est = model.estimate(make_series(["C"] * 13), LATEST)
        assert est.is_current
        assert est.rate_months_per_year == REAL_TIME_RATE
        assert est.confidence == pytest.approx(1.0)

    def test_only_samples_after_last_current_count(self, model, make_series):
        series = make_series(["C", "C", (2020, 1), (2020, 2), (2020, 3)], start=(2025, 6))
        est = model.estimate(series, LATEST)
        assert not est.is_current
        assert est.sample_count == 3
        assert est.rate_months_per_year == pytest.approx(12.0)
        assert est.confidence < 0.9  # only two intervals measured


class TestFallback:
    def test_no_samples(self, model, make_series):
        est = model.estimate(make_series([]), LATEST)
        assert est.is_fallback
        assert est.rate_months_per_year == pytest.approx(6.0)
        assert est.confidence == FALLBACK_CONFIDENCE
        assert est.sample_count == 0

    def test_single_sample(self, model, make_series):
        est = model.estimate(make_series([(2013, 1)]), LATEST)
        assert est.is_fallback
        assert est.sample_count == 1
        assert est.rate_months_per_year > 0

    def test_fallback_is_logged(self, model, make_series, caplog):
        with caplog.at_level(logging.WARNING, logger="stateside.core.velocity"):
            model.estimate(make_series([]), LATEST)
        assert "fallback velocity" in caplog.text

    def test_fallback_rate_is_floored(self, make_series):
        est = VelocityModel(fallback_rate=0.0).estimate(make_series([]), LATEST)
        assert est.rate_months_per_year == MIN_PROJECTION_RATE

    def test_estimate_all_fills_missing_pairs(self, model):
        estimates = model.estimate_all({}, LATEST)
        assert len(estimates) == len(EBCategory) * len(Chargeability)
        assert all(e.is_fallback for e in estimates.values())


class TestRetrogression:
    def test_backwards_movement_floors_rate(self, model, make_series):
        series = make_series([(2020, 6), (2020, 5), (2020, 4), (2020, 3)], start=(2025, 7))
        est = model.estimate(series, LATEST)
        assert est.raw_rate < 0
        assert est.rate_months_per_year == MIN_PROJECTION_RATE
        assert "retrogressed" in est.explanation

    def test_flat_cutoff_floors_rate(self, model, make_series):
        est = model.estimate(make_series([(2013, 1)] * 13), LATEST)
        assert est.raw_rate == 0
        assert est.rate_months_per_year == MIN_PROJECTION_RATE


class TestFreshness:
    def test_recent_bulletin_is_fresh(self):
        assert freshness_factor(100, 100) == 1.0
        assert freshness_factor(100, 103) == 1.0

    def test_decays_to_floor(self):
        assert freshness_factor(100, 115) == pytest.approx(0.65)
        assert freshness_factor(100, 127) == pytest.approx(0.3)
        assert freshness_factor(100, 400) == pytest.approx(0.3)

    def test_stale_history_lowers_confidence(self, model, make_series):
        series = make_series(_advancing())
        fresh = model.estimate(series, LATEST)
        stale = model.estimate(series, LATEST + 27)
        assert stale.confidence < fresh.confidence
        assert stale.rate_months_per_year == fresh.rate_months_per_year


class TestBundledHistory:
    def test_every_pair_present(self):
        assert set(DEFAULT_BULLETIN_HISTORY) == {
            (c, ch) for c in EBCategory for ch in Chargeability
        }

    def test_eb1_row_is_current(self, model):
        est = model.estimate(DEFAULT_BULLETIN_HISTORY[(EBCategory.EB1, Chargeability.ALL_OTHER)], LATEST)
        assert est.is_current

    def test_eb2_india_is_slow_and_uneven(self, model):
        est = model.estimate(DEFAULT_BULLETIN_HISTORY[(EBCategory.EB2, Chargeability.INDIA)], LATEST)
        assert est.rate_months_per_year == pytest.approx(72 / 11, abs=1e-3)
        assert est.confidence == pytest.approx(0.5228, abs=1e-3)
