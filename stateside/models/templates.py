"""Path templates — the explicit table of pathways the engine knows.

A template is pure data: an ordered list of catalog node ids plus flags.
Eligibility rules are kept in ``stateside.core.eligibility`` keyed by
``template_id``, so adding a pathway means adding one entry here and one rule
there; no control flow changes.

The backlog wait stage is never listed.  The composer inserts it in front of
the adjudication stage when the template's category is charted.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from stateside.models.bulletin import EBCategory
from stateside.models.stages import Track


class TemplateStage(BaseModel):
    """One stage slot in a template."""

    model_config = ConfigDict(frozen=True)

    node_id: str
    track: Track = Track.GC
    is_concurrent: bool = False
    after: str | None = None  # prerequisite for concurrent stages
    note: str | None = None


class PathTemplate(BaseModel):
    """A pathway definition: stages, category, and static flags."""

    model_config = ConfigDict(frozen=True)

    template_id: str
    name: str
    gc_category: str
    eb_category: EBCategory | None = None  # None ⇒ not charted, never waits
    vehicle: str | None = None  # status node that carries the applicant
    stages: tuple[TemplateStage, ...]
    is_self_petition: bool = False

    @property
    def node_ids(self) -> list[str]:
        return [s.node_id for s in self.stages]

    @property
    def has_wait_stage(self) -> bool:
        """Charted categories may need a backlog wait; the rest never do."""
        return self.eb_category is not None


def _gc(node_id: str, **kw) -> TemplateStage:
    return TemplateStage(node_id=node_id, track=Track.GC, **kw)


_PERM_STAGES = (
    _gc("pwd"),
    _gc("recruit"),
    _gc("perm"),
    _gc("i140", note="Priority date is the PERM filing date"),
    _gc("i485"),
)

_TN_PERM_STAGES = (
    _gc("pwd"),
    _gc("recruit"),
    _gc("perm"),
    _gc("i140", note="Priority date is the PERM filing date"),
    _gc("i485", note="TN has no dual intent; travel on AP once the I-485 is filed"),
)

DEFAULT_PATH_TEMPLATES: list[PathTemplate] = [
    PathTemplate(
        template_id="h1b_eb2_perm",
        name="H-1B → EB-2 (PERM)",
        gc_category="EB-2",
        eb_category=EBCategory.EB2,
        vehicle="h1b",
        stages=_PERM_STAGES,
    ),
    PathTemplate(
        template_id="h1b_eb3_perm",
        name="H-1B → EB-3 (PERM)",
        gc_category="EB-3",
        eb_category=EBCategory.EB3,
        vehicle="h1b",
        stages=_PERM_STAGES,
    ),
    PathTemplate(
        template_id="tn_eb2_perm",
        name="TN → EB-2 (PERM)",
        gc_category="EB-2",
        eb_category=EBCategory.EB2,
        vehicle="tn",
        stages=_TN_PERM_STAGES,
    ),
    PathTemplate(
        template_id="tn_eb3_perm",
        name="TN → EB-3 (PERM)",
        gc_category="EB-3",
        eb_category=EBCategory.EB3,
        vehicle="tn",
        stages=_TN_PERM_STAGES,
    ),
    PathTemplate(
        template_id="eb2_niw",
        name="EB-2 NIW (self-petition)",
        gc_category="EB-2 NIW",
        eb_category=EBCategory.EB2,
        stages=(
            _gc("eb2niw", note="No employer or PERM required"),
            _gc("i485"),
        ),
        is_self_petition=True,
    ),
    PathTemplate(
        template_id="eb1a",
        name="EB-1A Extraordinary Ability",
        gc_category="EB-1A",
        eb_category=EBCategory.EB1,
        stages=(_gc("eb1a"), _gc("i485")),
        is_self_petition=True,
    ),
    PathTemplate(
        template_id="eb1b",
        name="EB-1B Outstanding Researcher",
        gc_category="EB-1B",
        eb_category=EBCategory.EB1,
        stages=(_gc("eb1b", note="Employer-sponsored, no PERM"), _gc("i485")),
    ),
    PathTemplate(
        template_id="eb1c",
        name="L-1 → EB-1C Multinational Manager",
        gc_category="EB-1C",
        eb_category=EBCategory.EB1,
        vehicle="l1",
        stages=(_gc("eb1c"), _gc("i485")),
    ),
    PathTemplate(
        template_id="eb5",
        name="EB-5 Investor",
        gc_category="EB-5",
        stages=(
            _gc("i526"),
            _gc("i485", note="Conditional residence; I-829 removes conditions"),
        ),
        is_self_petition=True,
    ),
    PathTemplate(
        template_id="marriage",
        name="Marriage to US Citizen",
        gc_category="IR-1/CR-1",
        stages=(
            _gc("i130"),
            _gc("i485", is_concurrent=True, after="i130",
                note="Filed together with the I-130"),
        ),
        is_self_petition=True,
    ),
]

TEMPLATES_BY_ID: dict[str, PathTemplate] = {t.template_id: t for t in DEFAULT_PATH_TEMPLATES}
