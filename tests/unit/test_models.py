"""Tests for the Stateside data models — bulletins, durations, case input."""

from __future__ import annotations

from datetime import date, datetime

import pytest
from pydantic import ValidationError

from stateside.models.bulletin import (
    CURRENT,
    BulletinSample,
    Chargeability,
    Current,
    Cutoff,
    EBCategory,
    HistoricalBulletinSeries,
    PriorityDateTable,
    ChargeabilityRow,
    format_month_index,
    month_index,
    month_index_of,
    month_index_to_date,
    parse_cutoff,
)
from stateside.models.case import (
    InvalidDate,
    Milestone,
    MilestoneStatus,
    TrackedCase,
    UnsetDate,
    ValidDate,
    format_remaining,
    normalize_receipt_number,
    parse_user_date,
)
from stateside.models.paths import DurationRange
from stateside.models.profile import CountryOfBirth, FilterState, PriorityDate


class TestMonthIndex:
    def test_linear_encoding(self):
        assert month_index(2013, 1) == 2013 * 12
        assert month_index(2013, 12) - month_index(2013, 1) == 11
        assert month_index(2014, 1) - month_index(2013, 12) == 1

    def test_round_trip_through_date(self):
        idx = month_index(2019, 6)
        assert month_index_to_date(idx) == date(2019, 6, 1)
        assert month_index_of(date(2019, 6, 30)) == idx

    def test_format(self):
        assert format_month_index(month_index(2013, 1)) == "Jan 2013"
        assert format_month_index(month_index(2024, 10)) == "Oct 2024"


class TestParseCutoff:
    @pytest.mark.parametrize("text", ["C", "c", "current", "CURRENT", " Current "])
    def test_current_tokens(self, text: str):
        assert parse_cutoff(text) == CURRENT

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Jan 2013", (2013, 1)),
            ("July 2013", (2013, 7)),
            ("Sept 2020", (2020, 9)),
            ("01JAN13", (2013, 1)),
            ("15nov22", (2022, 11)),
        ],
    )
    def test_dated_forms(self, text: str, expected: tuple[int, int]):
        assert parse_cutoff(text) == Cutoff(month_index=month_index(*expected))

    @pytest.mark.parametrize("text", [None, "", "U", "unavailable", "Foo 2013", "2013-01"])
    def test_unparseable_is_none(self, text):
        assert parse_cutoff(text) is None


class TestCutoffValue:
    def test_current_reaches_everything(self):
        assert CURRENT.is_current
        assert CURRENT.reaches(month_index(2099, 1))
        assert CURRENT.months_behind(month_index(2099, 1)) == 0

    def test_cutoff_reaches_on_or_before(self):
        cutoff = Cutoff(month_index=month_index(2013, 1))
        assert cutoff.reaches(month_index(2012, 12))
        assert cutoff.reaches(month_index(2013, 1))
        assert not cutoff.reaches(month_index(2013, 2))

    def test_months_behind(self):
        cutoff = Cutoff(month_index=month_index(2013, 1))
        assert cutoff.months_behind(month_index(2015, 1)) == 24
        assert cutoff.months_behind(month_index(2010, 1)) == 0

    def test_table_discriminates_on_kind(self):
        table = PriorityDateTable.model_validate(
            {"eb2": {"india": {"kind": "cutoff", "month_index": month_index(2013, 1)}}}
        )
        assert table.lookup(EBCategory.EB2, Chargeability.INDIA) == Cutoff(
            month_index=month_index(2013, 1)
        )
        assert isinstance(table.lookup(EBCategory.EB2, Chargeability.CHINA), Current)

    def test_row_get(self):
        row = ChargeabilityRow(china=Cutoff(month_index=month_index(2020, 9)))
        assert row.get(Chargeability.CHINA).display == "Sep 2020"
        assert row.get(Chargeability.ALL_OTHER).display == "Current"


class TestHistoricalBulletinSeries:
    def test_appended_returns_new_series(self):
        series = HistoricalBulletinSeries(
            category=EBCategory.EB3, chargeability=Chargeability.INDIA
        )
        sample = BulletinSample(bulletin_month=month_index(2025, 1), cutoff=CURRENT)
        extended = series.appended(sample)
        assert series.samples == ()
        assert extended.samples == (sample,)
        assert extended.key == (EBCategory.EB3, Chargeability.INDIA)

    def test_appended_refuses_older_sample(self):
        series = HistoricalBulletinSeries(
            category=EBCategory.EB3,
            chargeability=Chargeability.INDIA,
            samples=(BulletinSample(bulletin_month=month_index(2025, 2), cutoff=CURRENT),),
        )
        with pytest.raises(ValueError):
            series.appended(BulletinSample(bulletin_month=month_index(2025, 2), cutoff=CURRENT))

    def test_ordered_sorts_by_bulletin_month(self):
        late = BulletinSample(bulletin_month=month_index(2025, 3), cutoff=CURRENT)
        early = BulletinSample(bulletin_month=month_index(2025, 1), cutoff=CURRENT)
        series = HistoricalBulletinSeries(
            category=EBCategory.EB1,
            chargeability=Chargeability.ALL_OTHER,
            samples=(late, early),
        )
        assert series.ordered() == [early, late]


class TestDurationRange:
    def test_zero(self):
        assert DurationRange().is_zero
        assert DurationRange().display == "0 mo"

    def test_days_display(self):
        assert DurationRange.from_days(15).display == "15 days"

    def test_months_display(self):
        assert DurationRange.from_months(6, 9).display == "6-9 mo"
        assert DurationRange.from_months(14, 17).display == "14-17 mo"
        assert DurationRange.from_months(12, 12).display == "12 mo"

    def test_years_display(self):
        assert DurationRange.from_months(24, 36).display == "2-3 yr"
        assert DurationRange(min_years=3, max_years=3).display == "3 yr"

    def test_months_properties(self):
        rng = DurationRange.from_months(6, 9)
        assert rng.min_months == pytest.approx(6)
        assert rng.max_months == pytest.approx(9)

    def test_rejects_inverted_range(self):
        with pytest.raises(ValidationError):
            DurationRange(min_years=2, max_years=1)

    def test_rejects_negative(self):
        with pytest.raises(ValidationError):
            DurationRange(min_years=-1, max_years=1)


class TestFilterState:
    def test_defaults(self):
        profile = FilterState()
        assert profile.chargeability == Chargeability.ALL_OTHER
        assert not profile.is_tn_eligible
        assert not profile.has_established_priority_date

    @pytest.mark.parametrize(
        "country,expected",
        [
            (CountryOfBirth.INDIA, Chargeability.INDIA),
            (CountryOfBirth.CHINA, Chargeability.CHINA),
            (CountryOfBirth.CANADA, Chargeability.ALL_OTHER),
            (CountryOfBirth.MEXICO, Chargeability.ALL_OTHER),
            (CountryOfBirth.OTHER, Chargeability.ALL_OTHER),
        ],
    )
    def test_chargeability(self, country: CountryOfBirth, expected: Chargeability):
        assert FilterState(country_of_birth=country).chargeability == expected

    def test_tn_eligible_by_birth_or_citizenship(self):
        assert FilterState(country_of_birth=CountryOfBirth.MEXICO).is_tn_eligible
        assert FilterState(is_canadian_or_mexican_citizen=True).is_tn_eligible

    def test_established_priority_date_needs_both(self):
        pd = PriorityDate(month=3, year=2019)
        assert not FilterState(existing_priority_date=pd).has_established_priority_date
        assert FilterState(
            has_approved_i140=True, existing_priority_date=pd
        ).has_established_priority_date

    def test_priority_date_bounds(self):
        with pytest.raises(ValidationError):
            PriorityDate(month=13, year=2019)

    def test_frozen(self):
        profile = FilterState()
        with pytest.raises(ValidationError):
            profile.is_stem = True  # type: ignore[misc]


class TestParseUserDate:
    def test_iso_day(self):
        assert parse_user_date("2024-03-05") == ValidDate(value=date(2024, 3, 5))

    def test_iso_month_is_first_of_month(self):
        assert parse_user_date("2024-03") == ValidDate(value=date(2024, 3, 1))

    def test_us_format(self):
        assert parse_user_date("03/05/2024") == ValidDate(value=date(2024, 3, 5))

    def test_date_objects(self):
        assert parse_user_date(date(2024, 1, 2)).value == date(2024, 1, 2)
        assert parse_user_date(datetime(2024, 1, 2, 15, 30)).value == date(2024, 1, 2)

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_blank_is_unset(self, raw):
        assert isinstance(parse_user_date(raw), UnsetDate)

    @pytest.mark.parametrize("raw", ["2024-02-30", "2024-13-01", "next tuesday", "05/05/24"])
    def test_garbage_is_invalid(self, raw: str):
        parsed = parse_user_date(raw)
        assert isinstance(parsed, InvalidDate)
        assert parsed.value is None
        assert parsed.raw == raw

    def test_non_string_is_invalid(self):
        parsed = parse_user_date(12345)
        assert isinstance(parsed, InvalidDate)
        assert parsed.raw == "12345"


class TestMilestone:
    def test_strings_are_parsed(self):
        milestone = Milestone(filed_date="2024-01-10", approved_date="not a date")
        assert milestone.filed_date == ValidDate(value=date(2024, 1, 10))
        assert isinstance(milestone.approved_date, InvalidDate)
        assert isinstance(milestone.priority_date, UnsetDate)

    def test_receipt_number_normalized(self):
        assert Milestone(receipt_number=" src2412345678 ").receipt_number == "SRC2412345678"

    def test_malformed_receipt_dropped(self):
        assert Milestone(receipt_number="SRC241234567").receipt_number is None

    def test_normalize_receipt_number(self):
        assert normalize_receipt_number("ioe0912345678") == "IOE0912345678"
        assert normalize_receipt_number(None) is None
        assert normalize_receipt_number("SRC24123456789") is None


class TestTrackedCaseFromRaw:
    def test_camel_case_input(self):
        case = TrackedCase.from_raw(
            {
                "plannedPathId": "h1b_eb2_perm",
                "milestones": {
                    "perm": {"filedDate": "2019-03-10", "approvedDate": "2020-01-15"},
                    "i140": {"filedDate": "2020-02-01", "receiptNumber": "SRC2012345678"},
                },
                "portedPriorityDate": {"priorityDate": "2015-06-01", "category": "EB-2"},
            }
        )
        assert case.planned_path_id == "h1b_eb2_perm"
        assert case.milestone("perm").status == MilestoneStatus.APPROVED
        assert case.milestone("i140").status == MilestoneStatus.FILED
        assert case.milestone("i140").receipt_number == "SRC2012345678"
        assert case.ported_priority_date.category == EBCategory.EB2
        assert case.ported_priority_date.priority_date.value == date(2015, 6, 1)

    def test_snake_case_input(self):
        case = TrackedCase.from_raw(
            {"milestones": {"i485": {"status": "Filed", "filed_date": "2024-05-01"}}}
        )
        assert case.milestone("i485").status == MilestoneStatus.FILED
        assert case.milestone("i485").filed_date.value == date(2024, 5, 1)

    def test_explicit_status_wins(self):
        case = TrackedCase.from_raw(
            {"milestones": {"i140": {"status": "denied", "filedDate": "2024-05-01"}}}
        )
        assert case.milestone("i140").status == MilestoneStatus.DENIED

    def test_unknown_status_is_inferred(self):
        case = TrackedCase.from_raw(
            {"milestones": {"i140": {"status": "pending?", "approvedDate": "2024-05-01"}}}
        )
        assert case.milestone("i140").status == MilestoneStatus.APPROVED

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("pending", MilestoneStatus.FILED),
            ("in_progress", MilestoneStatus.FILED),
            ("In Progress", MilestoneStatus.FILED),
            ("complete", MilestoneStatus.APPROVED),
            ("Completed", MilestoneStatus.APPROVED),
            ("not-started", MilestoneStatus.NOT_STARTED),
        ],
    )
    def test_status_aliases(self, raw, expected):
        case = TrackedCase.from_raw({"milestones": {"i485": {"status": raw}}})
        assert case.milestone("i485").status == expected

    def test_alias_without_dates_is_not_dropped(self):
        case = TrackedCase.from_raw(
            {"milestones": {"i485": {"status": "pending"}, "recruit": {"status": "complete"}}}
        )
        assert case.milestone("i485").status == MilestoneStatus.FILED
        assert case.milestone("recruit").status == MilestoneStatus.APPROVED

    def test_non_mapping_entries_skipped(self):
        case = TrackedCase.from_raw({"milestones": {"perm": "approved", "i140": None}})
        assert case.milestones == {}

    @pytest.mark.parametrize("raw", [None, "garbage", 42, ["perm"]])
    def test_non_mapping_input_is_empty_case(self, raw):
        assert TrackedCase.from_raw(raw) == TrackedCase()

    def test_missing_milestone_is_none(self):
        assert TrackedCase().milestone("perm") is None


class TestFormatRemaining:
    @pytest.mark.parametrize(
        "months,expected",
        [(0, "Done"), (-1, "Done"), (0.3, "~1 months"), (5.4, "~5 months"),
         (18, "~1.5 years"), (24, "~2 years")],
    )
    def test_format(self, months: float, expected: str):
        assert format_remaining(months) == expected
