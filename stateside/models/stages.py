"""Static stage catalog — every immigration step a path can contain.

The catalog is versioned reference data consumed read-only by the composer
and the reconciler.  Changing a node is a data migration: bump
``CATALOG_VERSION``.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from stateside.models.processing import FormKey

CATALOG_VERSION = "2025-10"


class Track(str, Enum):
    """The two parallel timeline tracks."""

    STATUS = "status"
    GC = "gc"


class StageCategory(str, Enum):
    STATUS = "status"
    LABOR = "labor"
    PETITION = "petition"
    ADJUDICATION = "adjudication"
    WAIT = "wait"
    TERMINAL = "terminal"


class StageNode(BaseModel):
    """One catalog entry.

    Duration comes from ``form`` (live processing times) when set, otherwise
    from ``static_duration_months``.  Wait and terminal nodes have neither;
    the composer sizes them.
    """

    model_config = ConfigDict(frozen=True)

    node_id: str
    display_name: str
    category: StageCategory
    default_track: Track
    form: FormKey | None = None
    static_duration_months: tuple[float, float] | None = None
    filing_fee_usd: int = 0
    premium_days: int | None = None  # overrides the form's premium time
    supports_premium: bool = False
    establishes_priority_date: bool = False


def _node(node_id: str, display_name: str, category: StageCategory, track: Track, **kw) -> StageNode:
    return StageNode(
        node_id=node_id,
        display_name=display_name,
        category=category,
        default_track=track,
        **kw,
    )


_S, _G = Track.STATUS, Track.GC

DEFAULT_STAGE_CATALOG: dict[str, StageNode] = {
    node.node_id: node
    for node in [
        # Status track
        _node("f1", "F-1 Student", StageCategory.STATUS, _S,
              static_duration_months=(12, 24)),
        _node("opt", "OPT", StageCategory.STATUS, _S,
              static_duration_months=(12, 12), filing_fee_usd=470),
        _node("stem_opt", "STEM OPT Extension", StageCategory.STATUS, _S,
              static_duration_months=(24, 24), filing_fee_usd=470),
        _node("h1b", "H-1B", StageCategory.STATUS, _S,
              static_duration_months=(36, 72), filing_fee_usd=780),
        _node("tn", "TN", StageCategory.STATUS, _S,
              static_duration_months=(36, 36), filing_fee_usd=50),
        _node("l1", "L-1", StageCategory.STATUS, _S,
              static_duration_months=(12, 36), filing_fee_usd=1385),
        _node("o1", "O-1", StageCategory.STATUS, _S,
              static_duration_months=(36, 36), filing_fee_usd=1055),
        # Labor certification
        _node("pwd", "Prevailing Wage Determination", StageCategory.LABOR, _G,
              form=FormKey.PWD),
        _node("recruit", "Recruitment", StageCategory.LABOR, _G,
              static_duration_months=(2, 3)),
        _node("perm", "PERM Labor Certification", StageCategory.LABOR, _G,
              form=FormKey.PERM, establishes_priority_date=True),
        # Immigrant petitions
        _node("i140", "I-140 Petition", StageCategory.PETITION, _G,
              form=FormKey.I140, filing_fee_usd=1315, supports_premium=True,
              establishes_priority_date=True),
        _node("eb1a", "EB-1A Petition", StageCategory.PETITION, _G,
              form=FormKey.I140, filing_fee_usd=1315, supports_premium=True,
              establishes_priority_date=True),
        _node("eb1b", "EB-1B Petition", StageCategory.PETITION, _G,
              form=FormKey.I140, filing_fee_usd=1315, supports_premium=True,
              establishes_priority_date=True),
        _node("eb1c", "EB-1C Petition", StageCategory.PETITION, _G,
              form=FormKey.I140, filing_fee_usd=1315, supports_premium=True,
              premium_days=45, establishes_priority_date=True),
        _node("eb2niw", "EB-2 NIW Petition", StageCategory.PETITION, _G,
              form=FormKey.I140, filing_fee_usd=1315, supports_premium=True,
              premium_days=45, establishes_priority_date=True),
        _node("i526", "I-526E Investor Petition", StageCategory.PETITION, _G,
              static_duration_months=(30, 52), filing_fee_usd=11160),
        _node("i130", "I-130 Relative Petition", StageCategory.PETITION, _G,
              form=FormKey.I130, filing_fee_usd=675),
        # Backlog, adjudication, end marker
        _node("pd_wait", "Priority Date Wait", StageCategory.WAIT, _G),
        _node("i485", "I-485 Adjustment of Status", StageCategory.ADJUDICATION, _G,
              form=FormKey.I485, filing_fee_usd=1440),
        _node("gc", "Green Card", StageCategory.TERMINAL, _G),
    ]
}

WAIT_NODE_ID = "pd_wait"
TERMINAL_NODE_ID = "gc"

# Stages whose approval fixes the applicant's priority date.
PRIORITY_DATE_NODE_IDS: frozenset[str] = frozenset(
    nid for nid, node in DEFAULT_STAGE_CATALOG.items() if node.establishes_priority_date
)

# Status nodes that carry work authorization (usable as a gc-track anchor).
WORK_STATUS_NODE_IDS: frozenset[str] = frozenset(
    {"opt", "stem_opt", "h1b", "tn", "l1", "o1"}
)
