"""End-to-end integration tests — profile to composed and reconciled timelines.

These tests exercise the EligibilityResolver, PathComposer, BacklogContext,
VelocityModel and CaseReconciler working together through TimelineEngine,
plus the live-data bridge feeding a snapshot in.
"""

from __future__ import annotations

import httpx
import pytest

from stateside.bridge.live_data import LiveDataClient, load_snapshot
from stateside.core.composer import validate_track_order
from stateside.core.engine import TimelineEngine
from stateside.models.bulletin import Chargeability, EBCategory, month_index
from stateside.models.case import StageProgress, TrackedCase
from stateside.models.profile import CountryOfBirth, CurrentStatus, Education, FilterState
from stateside.models.stages import Track


class TestCanadianApplicant:
    """A Canadian citizen living abroad with a bachelor's degree."""

    @pytest.fixture
    def projection(self, engine, as_of):
        profile = FilterState(
            country_of_birth=CountryOfBirth.CANADA,
            is_canadian_or_mexican_citizen=True,
        )
        return engine.project(profile, as_of)

    def test_tn_path_offered(self, projection):
        assert "tn_eb3_perm" in projection.path_ids
        assert "h1b_eb3_perm" in projection.path_ids
        assert "tn_eb2_perm" not in projection.path_ids

    def test_tn_status_track(self, projection):
        path = projection.get_path("tn_eb3_perm")
        assert [s.node_id for s in path.stages_on(Track.STATUS)] == ["tn"]
        assert not path.has_lottery

    def test_h1b_alternative_has_lottery(self, projection):
        assert projection.get_path("h1b_eb3_perm").has_lottery


class TestIndianH1B:
    """An H-1B holder born in India with a master's degree."""

    @pytest.fixture
    def profile(self):
        return FilterState(
            current_status=CurrentStatus.H1B,
            education=Education.MASTERS,
            is_stem=True,
            country_of_birth=CountryOfBirth.INDIA,
        )

    def test_every_employment_path_waits(self, engine, profile, as_of):
        projection = engine.project(profile, as_of)
        assert projection.path_ids == ["h1b_eb2_perm", "h1b_eb3_perm", "eb2_niw"]
        for path in projection.paths:
            validate_track_order(path.stages)
            assert path.wait_stage is not None
            assert path.wait_stage.duration.max_years > 0

    def test_reproducible_across_engines(self, profile, prod_config, as_of):
        first = TimelineEngine(prod_config=prod_config).project(profile, as_of)
        second = TimelineEngine(prod_config=prod_config).project(profile, as_of)
        assert first.input_hash == second.input_hash
        assert first.output_hash == second.output_hash

    def test_later_as_of_changes_result(self, engine, profile, as_of):
        later = as_of.replace(year=as_of.year + 1)
        assert engine.project(profile, as_of).output_hash != engine.project(profile, later).output_hash


class TestTrackedCaseRoundTrip:
    """A case that has already finished every green-card stage."""

    MILESTONES = {
        "pwd": {"filedDate": "2018-06-01", "approvedDate": "2018-12-01"},
        "recruit": {"filedDate": "2019-01-01", "approvedDate": "2019-03-01"},
        "perm": {"filedDate": "2019-03-10", "approvedDate": "2020-01-15"},
        "i140": {"filedDate": "2020-02-01", "approvedDate": "2020-06-01"},
        "i485": {"filedDate": "2024-01-05", "approvedDate": "2025-06-01"},
    }

    def test_finished_case_has_nothing_remaining(self, engine, as_of):
        profile = FilterState(
            current_status=CurrentStatus.H1B,
            education=Education.MASTERS,
            country_of_birth=CountryOfBirth.INDIA,
        )
        case = TrackedCase.from_raw(
            {"plannedPathId": "h1b_eb2_perm", "milestones": self.MILESTONES}
        )
        projection = engine.project(profile, as_of, tracked_case=case)
        reconciled = projection.get_reconciled("h1b_eb2_perm")

        assert reconciled.remaining_display == "Done"
        assert reconciled.effective_priority_date == month_index(2019, 3)
        gc_stages = [s for s in reconciled.stages if s.track == Track.GC]
        assert [s.node_id for s in gc_stages] == ["pd_wait", "i485"]
        assert all(s.progress == StageProgress.DONE for s in gc_stages)

    def test_partial_case_projects_completion(self, engine, as_of):
        profile = FilterState(current_status=CurrentStatus.H1B)
        milestones = {k: self.MILESTONES[k] for k in ("pwd",)}
        case = TrackedCase.from_raw({"plannedPathId": "h1b_eb3_perm", "milestones": milestones})
        reconciled = engine.project(profile, as_of, tracked_case=case).get_reconciled("h1b_eb3_perm")
        assert reconciled.completed_count == 1
        assert reconciled.estimated_completion > as_of


class TestLiveSnapshot:
    """A live payload where every Final Action cutoff is current."""

    PAYLOAD = {
        "success": True,
        "data": {
            "lastUpdated": "2025-11-02T08:00:00Z",
            "finalAction": {
                cat: {"india": "C", "china": "C", "allOther": "C"}
                for cat in ("eb1", "eb2", "eb3")
            },
        },
    }

    @pytest.fixture
    def live_engine(self, prod_config, make_transport):
        transport = make_transport(lambda r: httpx.Response(200, json=self.PAYLOAD))
        with LiveDataClient(
            "https://example.test/api", prod_config=prod_config, transport=transport
        ) as client:
            snapshot = load_snapshot(client)
        return TimelineEngine(snapshot, prod_config=prod_config)

    def test_current_chart_removes_wait(self, live_engine, as_of):
        profile = FilterState(
            current_status=CurrentStatus.H1B,
            education=Education.MASTERS,
            country_of_birth=CountryOfBirth.INDIA,
        )
        path = live_engine.project(profile, as_of).get_path("h1b_eb2_perm")
        assert path.wait_stage is None
        assert path.concurrent_filing_eligible
        assert path.get_stage("i485").is_concurrent

    def test_live_sample_feeds_velocity(self, live_engine, as_of):
        estimate = live_engine.velocity(as_of)[(EBCategory.EB2, Chargeability.INDIA)]
        assert estimate.is_current

    def test_snapshot_records_defaulted_fields(self, live_engine):
        snapshot = live_engine.snapshot
        assert snapshot.uses_defaults
        assert "processing_times" in snapshot.defaulted_fields
        assert not any(f.startswith("final_action") for f in snapshot.defaulted_fields)
