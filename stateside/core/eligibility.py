"""EligibilityResolver — profile → ordered admissible path templates.

Templates are data (``stateside.models.templates``); the predicates that
admit them live here in ``ELIGIBILITY_RULES``, keyed by ``template_id``.
A rule returns a short human-readable reason when the template is
admissible and ``None`` otherwise.  Adding a pathway is one template entry
plus one rule entry.

Resolution also computes each template's *variant*: the status lead-in
that carries the applicant to the pathway, stages suppressed by an already
approved petition, and the inherited priority date.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from pydantic import BaseModel, ConfigDict

from stateside.errors import UnknownTemplateError
from stateside.models.bulletin import Chargeability, MonthIndex, month_index_of
from stateside.models.case import MilestoneStatus, TrackedCase, ValidDate
from stateside.models.profile import (
    CurrentStatus,
    Education,
    Experience,
    FilterState,
    PriorityDate,
)
from stateside.models.stages import DEFAULT_STAGE_CATALOG, StageCategory
from stateside.models.templates import (
    DEFAULT_PATH_TEMPLATES,
    TEMPLATES_BY_ID,
    PathTemplate,
)

logger = logging.getLogger(__name__)

EligibilityRule = Callable[[FilterState], "str | None"]


class TemplateVariant(BaseModel):
    """Per-profile parameters of an admissible template."""

    model_config = ConfigDict(frozen=True)

    unlocked_by: str
    subcategory: str | None = None
    status_lead_in: tuple[str, ...] = ()
    gc_anchor: str | None = None  # status node whose start gates the gc track
    suppressed_stages: tuple[str, ...] = ()
    priority_date: MonthIndex | None = None
    priority_date_source: str | None = None
    has_lottery: bool = False
    chargeability: Chargeability = Chargeability.ALL_OTHER


class ResolvedTemplate(BaseModel):
    model_config = ConfigDict(frozen=True)

    template: PathTemplate
    variant: TemplateVariant

    @property
    def template_id(self) -> str:
        return self.template.template_id


# ------------------------------------------------------------------
# Predicates
# ------------------------------------------------------------------


def has_advanced_degree(profile: FilterState) -> bool:
    """Master's, PhD, or a bachelor's plus more than five years' experience."""
    if profile.education in (Education.MASTERS, Education.PHD):
        return True
    return profile.education == Education.BACHELORS and profile.experience == Experience.GT5


def _advanced_degree_reason(profile: FilterState) -> str:
    if profile.education == Education.PHD:
        return "PhD"
    if profile.education == Education.MASTERS:
        return "Master's degree"
    return "Bachelor's + 5 years experience"


def eb3_subcategory(profile: FilterState) -> str:
    if profile.education != Education.HIGHSCHOOL:
        return "professional"
    if profile.experience in (Experience.TWO_TO_FIVE, Experience.GT5):
        return "skilled"
    return "other_worker"


def _eb2_perm(profile: FilterState) -> str | None:
    return _advanced_degree_reason(profile) if has_advanced_degree(profile) else None


def _eb3_perm(profile: FilterState) -> str | None:
    return f"EB-3 {eb3_subcategory(profile).replace('_', ' ')}"


def _tn_eb2_perm(profile: FilterState) -> str | None:
    if not profile.is_tn_eligible:
        return None
    return _eb2_perm(profile)


def _tn_eb3_perm(profile: FilterState) -> str | None:
    if not profile.is_tn_eligible:
        return None
    return _eb3_perm(profile)


def _eb2_niw(profile: FilterState) -> str | None:
    if has_advanced_degree(profile):
        return _advanced_degree_reason(profile)
    if profile.has_extraordinary_ability:
        return "Exceptional ability"
    return None


def _flag(attr: str, reason: str) -> EligibilityRule:
    def rule(profile: FilterState) -> str | None:
        return reason if getattr(profile, attr) else None

    return rule


ELIGIBILITY_RULES: dict[str, EligibilityRule] = {
    "h1b_eb2_perm": _eb2_perm,
    "h1b_eb3_perm": _eb3_perm,
    "tn_eb2_perm": _tn_eb2_perm,
    "tn_eb3_perm": _tn_eb3_perm,
    "eb2_niw": _eb2_niw,
    "eb1a": _flag("has_extraordinary_ability", "Extraordinary ability"),
    "eb1b": _flag("is_outstanding_researcher", "Outstanding researcher"),
    "eb1c": _flag("is_executive", "Multinational manager/executive"),
    "eb5": _flag("has_investment_capital", "Investment capital"),
    "marriage": _flag("is_married_to_us_citizen", "Married to a US citizen"),
}

_SUBCATEGORIES: dict[str, Callable[[FilterState], str]] = {
    "h1b_eb2_perm": lambda p: "advanced_degree",
    "tn_eb2_perm": lambda p: "advanced_degree",
    "h1b_eb3_perm": eb3_subcategory,
    "tn_eb3_perm": eb3_subcategory,
    "eb2_niw": lambda p: "advanced_degree" if has_advanced_degree(p) else "exceptional_ability",
}

# Current status → catalog node carrying it, if any.
_STATUS_NODES: dict[CurrentStatus, str] = {
    CurrentStatus.F1: "f1",
    CurrentStatus.OPT: "opt",
    CurrentStatus.H1B: "h1b",
    CurrentStatus.TN: "tn",
}


# ------------------------------------------------------------------
# Variant computation
# ------------------------------------------------------------------


def status_lead_in(profile: FilterState, vehicle: str | None) -> tuple[str, ...]:
    """Status-track stages that carry the applicant to the vehicle."""
    current = _STATUS_NODES.get(profile.current_status)
    if vehicle is None:
        return (current,) if current else ()
    if current == vehicle:
        return (vehicle,)

    stem = ("stem_opt",) if profile.is_stem else ()
    if profile.current_status == CurrentStatus.F1:
        return ("f1", "opt", *stem, vehicle)
    if profile.current_status == CurrentStatus.OPT:
        return ("opt", *stem, vehicle)
    return (vehicle,)


def _suppressed(profile: FilterState, template: PathTemplate) -> tuple[str, ...]:
    if not profile.has_established_priority_date or profile.needs_new_perm:
        return ()
    if template.eb_category is None:
        return ()
    if profile.existing_priority_date_category != template.eb_category:
        return ()
    suppressed = []
    for stage in template.stages:
        node = DEFAULT_STAGE_CATALOG.get(stage.node_id)
        if node is not None and node.category in (StageCategory.LABOR, StageCategory.PETITION):
            suppressed.append(stage.node_id)
    return tuple(suppressed)


def build_variant(profile: FilterState, template: PathTemplate, reason: str) -> TemplateVariant:
    lead_in = status_lead_in(profile, template.vehicle)
    priority_date: MonthIndex | None = None
    source: str | None = None
    if template.eb_category is not None and profile.has_established_priority_date:
        assert profile.existing_priority_date is not None
        priority_date = profile.existing_priority_date.month_index
        source = "existing"

    subcategory = _SUBCATEGORIES.get(template.template_id)
    return TemplateVariant(
        unlocked_by=reason,
        subcategory=subcategory(profile) if subcategory else None,
        status_lead_in=lead_in,
        gc_anchor=template.vehicle,
        suppressed_stages=_suppressed(profile, template),
        priority_date=priority_date,
        priority_date_source=source,
        has_lottery=template.vehicle == "h1b" and profile.current_status != CurrentStatus.H1B,
        chargeability=profile.chargeability,
    )


# ------------------------------------------------------------------
# Resolver
# ------------------------------------------------------------------


class EligibilityResolver:
    """Filter the template table down to what a profile admits.

    Raises ``UnknownTemplateError`` at construction if any template has no
    rule, so a half-added pathway fails immediately rather than silently
    never appearing.
    """

    def __init__(
        self,
        templates: list[PathTemplate] | None = None,
        rules: dict[str, EligibilityRule] | None = None,
    ) -> None:
        self._templates = list(templates if templates is not None else DEFAULT_PATH_TEMPLATES)
        self._rules = dict(rules if rules is not None else ELIGIBILITY_RULES)
        missing = [t.template_id for t in self._templates if t.template_id not in self._rules]
        if missing:
            raise UnknownTemplateError(
                f"No eligibility rule for templates: {missing}",
                {"known_rules": sorted(self._rules)},
            )

    @property
    def templates(self) -> list[PathTemplate]:
        return list(self._templates)

    def resolve(self, profile: FilterState) -> list[ResolvedTemplate]:
        """Admissible templates in table order, each listed once."""
        resolved: list[ResolvedTemplate] = []
        seen: set[str] = set()
        for template in self._templates:
            if template.template_id in seen:
                continue
            reason = self._rules[template.template_id](profile)
            if reason is None:
                continue
            seen.add(template.template_id)
            resolved.append(
                ResolvedTemplate(
                    template=template,
                    variant=build_variant(profile, template, reason),
                )
            )
        logger.info(
            "Resolved %d/%d templates: %s",
            len(resolved), len(self._templates), [r.template_id for r in resolved],
        )
        return resolved


# ------------------------------------------------------------------
# Tracked case → profile
# ------------------------------------------------------------------

_PETITION_NODE_IDS = ("i140", "eb2niw", "eb1a", "eb1b", "eb1c")


def apply_tracked_case(profile: FilterState, tracked_case: TrackedCase) -> FilterState:
    """Project an approved tracked petition into the profile.

    The tracked case is the only source of the approved-petition flag and
    the existing priority date: the priority date is the milestone's
    explicit priority date, else the PERM filing date, else the petition's
    own filing date.  When no petition is approved, or no date is usable,
    those profile fields are cleared.
    """
    for node_id in _PETITION_NODE_IDS:
        milestone = tracked_case.milestone(node_id)
        if milestone is None:
            continue
        approved = milestone.status == MilestoneStatus.APPROVED or isinstance(
            milestone.approved_date, ValidDate
        )
        if not approved or milestone.status == MilestoneStatus.DENIED:
            continue

        perm = tracked_case.milestone("perm")
        candidates = [
            milestone.priority_date,
            perm.filed_date if perm is not None else None,
            milestone.filed_date,
        ]
        pd = next((c.value for c in candidates if isinstance(c, ValidDate)), None)
        if pd is None:
            logger.info("Approved %s has no usable priority date", node_id)
            return _without_priority_date(profile)

        template = TEMPLATES_BY_ID.get(tracked_case.planned_path_id or "")
        category = (
            template.eb_category
            if template is not None and template.eb_category is not None
            else profile.existing_priority_date_category
        )
        index = month_index_of(pd)
        return profile.model_copy(
            update={
                "has_approved_i140": True,
                "existing_priority_date": PriorityDate(month=index % 12 + 1, year=index // 12),
                "existing_priority_date_category": category,
            }
        )
    return _without_priority_date(profile)


def _without_priority_date(profile: FilterState) -> FilterState:
    if (
        not profile.has_approved_i140
        and profile.existing_priority_date is None
        and profile.existing_priority_date_category is None
    ):
        return profile
    logger.debug("Tracked case has no approved petition; clearing the profile priority date")
    return profile.model_copy(
        update={
            "has_approved_i140": False,
            "existing_priority_date": None,
            "existing_priority_date_category": None,
        }
    )
