"""Tests for the processing-time adapter — payload spellings and defaults."""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Any

import pytest

from stateside.core.adapter import adapt_snapshot
from stateside.data.defaults import (
    DEFAULT_DATES_FOR_FILING,
    DEFAULT_FINAL_ACTION,
    DEFAULT_FORM_TIMINGS,
)
from stateside.models.bulletin import CURRENT, Chargeability, Cutoff, EBCategory, month_index
from stateside.models.processing import FormKey


def _full_payload() -> dict[str, Any]:
    chart = {
        "eb1": {"india": "01FEB22", "china": "Nov 2022", "allOther": "C"},
        "eb2": {"India": "Jan 2013", "China": "Sep 2020", "ROW": "Apr 2024"},
        "eb3": {"india": "Nov 2013", "china": "May 2021", "all_other": "Apr 2023"},
    }
    return {
        "success": True,
        "data": {
            "processingTimes": {
                "pwd": {"min": 5, "max": 7},
                "perm": {"minMonths": 14, "maxMonths": 17},
                "perm_audit": {"min": 20, "max": 24},
                "i140": {"min": 6, "max": 9, "premiumDays": 15},
                "I-485": {"min": 10, "max": 18},
                "I765": {"months": 4},
                "i-130": {"min": 10, "max": 14},
                "i129": {"min": 2, "max": 5, "premium_days": 15},
            },
            "finalAction": chart,
            "datesForFiling": copy.deepcopy(chart),
            "lastUpdated": "2025-10-01T12:00:00Z",
        },
    }


class TestAdaptSnapshot:
    def test_none_gives_complete_defaults(self):
        snap = adapt_snapshot(None)
        assert snap.uses_defaults
        assert snap.defaulted_fields == ("processing_times", "final_action", "dates_for_filing")
        assert snap.processing_times.timings == DEFAULT_FORM_TIMINGS
        assert snap.final_action == DEFAULT_FINAL_ACTION
        assert snap.dates_for_filing == DEFAULT_DATES_FOR_FILING

    @pytest.mark.parametrize("raw", ["not json", 42, ["a", "b"]])
    def test_non_mapping_gives_defaults(self, raw):
        assert adapt_snapshot(raw).uses_defaults  # type: ignore[arg-type]

    def test_full_payload_uses_no_defaults(self):
        snap = adapt_snapshot(_full_payload())
        assert not snap.uses_defaults
        assert snap.defaulted_fields == ()

    def test_envelope_or_inner_data(self):
        payload = _full_payload()
        assert adapt_snapshot(payload) == adapt_snapshot(payload["data"])

    def test_timing_spellings(self):
        timings = adapt_snapshot(_full_payload()).processing_times
        assert timings.get(FormKey.PERM).min_months == 14
        assert timings.get(FormKey.PERM_AUDIT).max_months == 24
        assert timings.get(FormKey.I765).min_months == 4
        assert timings.get(FormKey.I765).max_months == 4
        assert timings.get(FormKey.I140).premium_days == 15

    def test_chart_spellings(self):
        snap = adapt_snapshot(_full_payload())
        fad = snap.final_action
        assert fad.lookup(EBCategory.EB1, Chargeability.INDIA) == Cutoff(
            month_index=month_index(2022, 2)
        )
        assert fad.lookup(EBCategory.EB1, Chargeability.ALL_OTHER) == CURRENT
        assert fad.lookup(EBCategory.EB2, Chargeability.ALL_OTHER) == Cutoff(
            month_index=month_index(2024, 4)
        )

    def test_last_updated_parsed(self):
        snap = adapt_snapshot(_full_payload())
        assert snap.fetched_at == datetime(2025, 10, 1, 12, 0, tzinfo=timezone.utc)

    def test_explicit_fetched_at_wins(self):
        when = datetime(2025, 9, 1, tzinfo=timezone.utc)
        assert adapt_snapshot(_full_payload(), fetched_at=when).fetched_at == when

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("2025-11", month_index(2025, 11)),
            ("2025-11-01", month_index(2025, 11)),
            ("November 2025", month_index(2025, 11)),
            ("2025-13", None),
            ("soon", None),
            (202511, None),
        ],
    )
    def test_bulletin_month(self, raw, expected):
        payload = _full_payload()
        payload["data"]["bulletinMonth"] = raw
        assert adapt_snapshot(payload).bulletin_month == expected

    def test_bulletin_month_absent(self):
        assert adapt_snapshot(_full_payload()).bulletin_month is None


class TestPartialPayloads:
    def test_missing_form_is_defaulted(self):
        payload = _full_payload()
        del payload["data"]["processingTimes"]["i-130"]
        snap = adapt_snapshot(payload)
        assert snap.uses_defaults
        assert snap.defaulted_fields == ("processing_times.I-130",)
        assert snap.processing_times.get(FormKey.I130) == DEFAULT_FORM_TIMINGS[FormKey.I130]

    def test_inverted_range_is_defaulted(self):
        payload = _full_payload()
        payload["data"]["processingTimes"]["pwd"] = {"min": 9, "max": 2}
        snap = adapt_snapshot(payload)
        assert "processing_times.PWD" in snap.defaulted_fields
        assert snap.processing_times.get(FormKey.PWD) == DEFAULT_FORM_TIMINGS[FormKey.PWD]

    @pytest.mark.parametrize(
        "bad", [{"min": -1, "max": -3}, {"min": "5", "max": "7"}, {"max": float("nan")}, "6 months", None]
    )
    def test_malformed_timing_is_defaulted(self, bad):
        payload = _full_payload()
        payload["data"]["processingTimes"]["I-485"] = bad
        snap = adapt_snapshot(payload)
        assert "processing_times.I-485" in snap.defaulted_fields

    def test_missing_premium_days_is_named(self):
        payload = _full_payload()
        payload["data"]["processingTimes"]["i140"] = {"min": 6, "max": 9}
        snap = adapt_snapshot(payload)
        assert snap.defaulted_fields == ("processing_times.I-140.premium_days",)
        assert snap.processing_times.get(FormKey.I140).premium_days == 15

    def test_unparseable_cell_is_defaulted(self):
        payload = _full_payload()
        payload["data"]["finalAction"]["eb2"]["India"] = "U"
        snap = adapt_snapshot(payload)
        assert snap.defaulted_fields == ("final_action.eb2.india",)
        assert snap.final_action.lookup(EBCategory.EB2, Chargeability.INDIA) == (
            DEFAULT_FINAL_ACTION.lookup(EBCategory.EB2, Chargeability.INDIA)
        )

    def test_missing_chart_is_defaulted_whole(self):
        payload = _full_payload()
        del payload["data"]["datesForFiling"]
        snap = adapt_snapshot(payload)
        assert snap.defaulted_fields == ("dates_for_filing",)
        assert snap.dates_for_filing == DEFAULT_DATES_FOR_FILING

    def test_snake_case_chart_keys(self):
        payload = _full_payload()
        data = payload["data"]
        data["final_action"] = data.pop("finalAction")
        data["dates_for_filing"] = data.pop("datesForFiling")
        assert not adapt_snapshot(payload).uses_defaults
