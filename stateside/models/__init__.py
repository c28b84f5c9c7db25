"""Stateside data models — all Pydantic v2, all frozen (immutable)."""

from stateside.models.bulletin import (
    CURRENT,
    BulletinSample,
    Chargeability,
    ChargeabilityRow,
    Current,
    Cutoff,
    EBCategory,
    HistoricalBulletinSeries,
    MonthIndex,
    PriorityDateTable,
    format_month_index,
    month_index,
    parse_cutoff,
)
from stateside.models.case import (
    InvalidDate,
    Milestone,
    MilestoneStatus,
    PortedPriorityDate,
    ReconciledPath,
    ReconciledStage,
    StageProgress,
    TrackedCase,
    UnsetDate,
    ValidDate,
    parse_user_date,
)
from stateside.models.paths import (
    ComposedPath,
    ComposedStage,
    DurationRange,
    VelocityInfo,
    WaitKind,
)
from stateside.models.processing import (
    FormKey,
    FormTiming,
    ImmigrationDataSnapshot,
    ProcessingTimes,
)
from stateside.models.profile import (
    CountryOfBirth,
    CurrentStatus,
    Education,
    Experience,
    FilterState,
    PriorityDate,
)
from stateside.models.stages import (
    CATALOG_VERSION,
    DEFAULT_STAGE_CATALOG,
    StageCategory,
    StageNode,
    Track,
)
from stateside.models.templates import (
    DEFAULT_PATH_TEMPLATES,
    PathTemplate,
    TemplateStage,
)

__all__ = [
    # bulletin
    "MonthIndex",
    "EBCategory",
    "Chargeability",
    "Current",
    "Cutoff",
    "CURRENT",
    "ChargeabilityRow",
    "PriorityDateTable",
    "BulletinSample",
    "HistoricalBulletinSeries",
    "month_index",
    "format_month_index",
    "parse_cutoff",
    # profile
    "CurrentStatus",
    "Education",
    "Experience",
    "CountryOfBirth",
    "PriorityDate",
    "FilterState",
    # processing
    "FormKey",
    "FormTiming",
    "ProcessingTimes",
    "ImmigrationDataSnapshot",
    # catalog & templates
    "CATALOG_VERSION",
    "DEFAULT_STAGE_CATALOG",
    "StageCategory",
    "StageNode",
    "Track",
    "DEFAULT_PATH_TEMPLATES",
    "PathTemplate",
    "TemplateStage",
    # composed output
    "DurationRange",
    "VelocityInfo",
    "WaitKind",
    "ComposedStage",
    "ComposedPath",
    # case tracking
    "UnsetDate",
    "InvalidDate",
    "ValidDate",
    "parse_user_date",
    "MilestoneStatus",
    "Milestone",
    "PortedPriorityDate",
    "TrackedCase",
    "StageProgress",
    "ReconciledStage",
    "ReconciledPath",
]
