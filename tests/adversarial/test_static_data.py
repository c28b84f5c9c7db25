"""Adversarial tests — static catalog, template and default-data consistency.

A defect in bundled data is a programming error that every projection would
inherit.  These tests pin the cross-table invariants the engine relies on.
"""

from __future__ import annotations

import pytest

from stateside.core.eligibility import ELIGIBILITY_RULES, EligibilityResolver
from stateside.data.bulletin_history import DEFAULT_BULLETIN_HISTORY
from stateside.data.defaults import (
    DEFAULT_DATES_FOR_FILING,
    DEFAULT_FINAL_ACTION,
    DEFAULT_FORM_TIMINGS,
)
from stateside.models.bulletin import Chargeability, Current, EBCategory
from stateside.models.processing import FormKey
from stateside.models.stages import (
    DEFAULT_STAGE_CATALOG,
    PRIORITY_DATE_NODE_IDS,
    TERMINAL_NODE_ID,
    WAIT_NODE_ID,
    WORK_STATUS_NODE_IDS,
    StageCategory,
    Track,
)
from stateside.models.templates import DEFAULT_PATH_TEMPLATES, TEMPLATES_BY_ID

TEMPLATE_IDS = [t.template_id for t in DEFAULT_PATH_TEMPLATES]


class TestCatalog:
    def test_keys_match_node_ids(self):
        for key, node in DEFAULT_STAGE_CATALOG.items():
            assert key == node.node_id

    def test_every_timed_node_has_a_duration_source(self):
        for node in DEFAULT_STAGE_CATALOG.values():
            if node.category in (StageCategory.WAIT, StageCategory.TERMINAL):
                assert node.form is None and node.static_duration_months is None
            else:
                assert node.form is not None or node.static_duration_months is not None, (
                    f"{node.node_id} has no duration source"
                )

    def test_static_durations_ordered(self):
        for node in DEFAULT_STAGE_CATALOG.values():
            if node.static_duration_months is not None:
                lo, hi = node.static_duration_months
                assert 0 <= lo <= hi

    def test_special_nodes_present(self):
        assert DEFAULT_STAGE_CATALOG[WAIT_NODE_ID].category == StageCategory.WAIT
        assert DEFAULT_STAGE_CATALOG[TERMINAL_NODE_ID].category == StageCategory.TERMINAL

    def test_priority_date_nodes(self):
        assert {"perm", "i140"} <= PRIORITY_DATE_NODE_IDS
        assert WORK_STATUS_NODE_IDS <= set(DEFAULT_STAGE_CATALOG)


class TestTemplates:
    def test_ids_unique(self):
        assert len(TEMPLATES_BY_ID) == len(DEFAULT_PATH_TEMPLATES)

    @pytest.mark.parametrize("template_id", TEMPLATE_IDS)
    def test_nodes_in_catalog(self, template_id):
        for node_id in TEMPLATES_BY_ID[template_id].node_ids:
            assert node_id in DEFAULT_STAGE_CATALOG, f"{template_id}: unknown node {node_id}"

    @pytest.mark.parametrize("template_id", TEMPLATE_IDS)
    def test_templates_list_gc_stages_only(self, template_id):
        template = TEMPLATES_BY_ID[template_id]
        for stage in template.stages:
            assert stage.track == Track.GC
            node = DEFAULT_STAGE_CATALOG[stage.node_id]
            assert node.category not in (StageCategory.WAIT, StageCategory.TERMINAL)

    @pytest.mark.parametrize("template_id", TEMPLATE_IDS)
    def test_concurrent_prerequisite_precedes(self, template_id):
        ids = TEMPLATES_BY_ID[template_id].node_ids
        for i, stage in enumerate(TEMPLATES_BY_ID[template_id].stages):
            if stage.is_concurrent:
                assert stage.after in ids[:i]

    @pytest.mark.parametrize("template_id", TEMPLATE_IDS)
    def test_vehicle_is_a_work_status(self, template_id):
        vehicle = TEMPLATES_BY_ID[template_id].vehicle
        assert vehicle is None or vehicle in WORK_STATUS_NODE_IDS

    @pytest.mark.parametrize("template_id", TEMPLATE_IDS)
    def test_every_template_ends_in_adjustment(self, template_id):
        assert TEMPLATES_BY_ID[template_id].node_ids[-1] == "i485"

    def test_every_template_has_a_rule(self):
        assert set(ELIGIBILITY_RULES) == set(TEMPLATES_BY_ID)

    def test_default_resolver_builds(self):
        EligibilityResolver()


class TestDefaultData:
    def test_every_form_has_a_timing(self):
        assert set(DEFAULT_FORM_TIMINGS) == set(FormKey)

    @pytest.mark.parametrize("category", list(EBCategory))
    @pytest.mark.parametrize("chargeability", list(Chargeability))
    def test_filing_chart_not_behind_final_action(self, category, chargeability):
        fad = DEFAULT_FINAL_ACTION.lookup(category, chargeability)
        dff = DEFAULT_DATES_FOR_FILING.lookup(category, chargeability)
        if isinstance(fad, Current):
            assert isinstance(dff, Current)
        elif not isinstance(dff, Current):
            assert dff.month_index >= fad.month_index

    @pytest.mark.parametrize("category", list(EBCategory))
    @pytest.mark.parametrize("chargeability", list(Chargeability))
    def test_history_covers_every_pair(self, category, chargeability):
        series = DEFAULT_BULLETIN_HISTORY[(category, chargeability)]
        months = [s.bulletin_month for s in series.ordered()]
        assert len(months) >= 2
        assert months == sorted(set(months))

    @pytest.mark.parametrize("category", list(EBCategory))
    @pytest.mark.parametrize("chargeability", list(Chargeability))
    def test_history_ends_on_default_chart(self, category, chargeability):
        latest = DEFAULT_BULLETIN_HISTORY[(category, chargeability)].ordered()[-1]
        assert latest.cutoff == DEFAULT_FINAL_ACTION.lookup(category, chargeability)
