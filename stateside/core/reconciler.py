"""CaseReconciler — a composed path measured against the user's real case.

For every trackable stage the reconciler decides ``done`` / ``in_progress``
/ ``not_started`` from the matching milestone, works out the applicant's
effective priority date (including a ported one), re-sizes the backlog wait
through the same ``BacklogContext`` the composer used, and lays the
remaining gc-track work out again to estimate a completion date.

User-entered dates are never trusted to parse: anything that is not a
``ValidDate`` is treated as absent.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta

from stateside.core.backlog import BacklogContext
from stateside.core.composer import LayoutItem, layout_tracks
from stateside.models.bulletin import MonthIndex, month_index_of
from stateside.models.case import (
    Milestone,
    MilestoneStatus,
    PortedPriorityDate,
    ReconciledPath,
    ReconciledStage,
    StageProgress,
    TrackedCase,
    ValidDate,
)
from stateside.models.paths import ComposedPath, ComposedStage, DurationRange
from stateside.models.stages import PRIORITY_DATE_NODE_IDS, Track

logger = logging.getLogger(__name__)

# A ported priority date survives withdrawal of the source I-140 once that
# petition has been approved for this many days.
PORTABILITY_QUALIFYING_DAYS = 180

_DAYS_PER_YEAR = 365.25


def _valid(field: object) -> date | None:
    return field.value if isinstance(field, ValidDate) else None


def portability_honored(ported: PortedPriorityDate) -> bool:
    """Whether a ported priority date may be used.

    Honored when no withdrawal is recorded, or when the source petition was
    approved at least ``PORTABILITY_QUALIFYING_DAYS`` before it was withdrawn.
    """
    withdrawn = _valid(ported.source_withdrawn_date)
    if withdrawn is None:
        return True
    approved = _valid(ported.source_approved_date)
    if approved is None:
        return False
    return (withdrawn - approved).days >= PORTABILITY_QUALIFYING_DAYS


class CaseReconciler:
    """Reconcile composed paths against a tracked case.

    Parameters
    ----------
    backlog:
        Charts and velocity used to re-size the priority-date wait.
    """

    def __init__(self, backlog: BacklogContext) -> None:
        self._backlog = backlog

    def reconcile(self, path: ComposedPath, tracked_case: TrackedCase, as_of: date) -> ReconciledPath:
        effective_pd, pd_source = self.effective_priority_date(tracked_case)
        if effective_pd is None and path.priority_date_is_existing:
            effective_pd, pd_source = path.priority_date, "profile"

        stages: list[ReconciledStage] = []
        for stage in path.stages:
            if stage.is_terminal:
                continue
            if stage.is_priority_wait:
                stages.append(self._wait_stage(path, stage, effective_pd))
            else:
                stages.append(self._tracked_stage(stage, tracked_case.milestone(stage.node_id), as_of))

        stages = self._close_passed_stages(stages)
        stages, remaining = self._layout_remaining(path, stages)

        result = ReconciledPath(
            path_id=path.path_id,
            name=path.name,
            stages=tuple(stages),
            effective_priority_date=effective_pd,
            priority_date_source=pd_source,
            remaining=remaining,
            estimated_completion=as_of + timedelta(days=round(remaining.max_years * _DAYS_PER_YEAR)),
            earliest_completion=as_of + timedelta(days=round(remaining.min_years * _DAYS_PER_YEAR)),
        )
        logger.info(
            "Reconciled %s: %d/%d stages done, remaining %s, PD %s",
            path.path_id,
            result.completed_count,
            len(stages),
            result.remaining_display,
            result.effective_priority_date_str or "none",
        )
        return result

    # ------------------------------------------------------------------
    # Priority date
    # ------------------------------------------------------------------

    def effective_priority_date(self, tracked_case: TrackedCase) -> tuple[MonthIndex | None, str | None]:
        """Earliest of the approved petition's date and an honored ported date.

        Returns ``(month_index, source)`` where source is the node id that
        established the date or ``"ported"``.  The ported date is a single
        value on the case and is considered exactly once.
        """
        candidates: list[tuple[MonthIndex, int, str]] = []
        perm = tracked_case.milestone("perm")
        perm_filed = _valid(perm.filed_date) if perm is not None else None

        for node_id in sorted(PRIORITY_DATE_NODE_IDS):
            milestone = tracked_case.milestone(node_id)
            if milestone is None or not _is_approved(milestone):
                continue
            pd = _valid(milestone.priority_date) or perm_filed or _valid(milestone.filed_date)
            if pd is not None:
                candidates.append((month_index_of(pd), 0, node_id))

        ported = tracked_case.ported_priority_date
        if ported is not None:
            ported_date = _valid(ported.priority_date)
            if ported_date is not None and portability_honored(ported):
                candidates.append((month_index_of(ported_date), 1, "ported"))
            elif ported_date is not None:
                logger.info("Ported priority date not honored: source withdrawn too early")

        if not candidates:
            return None, None
        index, _, source = min(candidates)
        return index, source

    # ------------------------------------------------------------------
    # Per-stage progress
    # ------------------------------------------------------------------

    @staticmethod
    def _tracked_stage(stage: ComposedStage, milestone: Milestone | None, as_of: date) -> ReconciledStage:
        duration = stage.duration
        base = dict(
            node_id=stage.node_id,
            display_name=stage.display_name,
            track=stage.track,
            duration=duration,
        )
        if milestone is None:
            return ReconciledStage(progress=StageProgress.NOT_STARTED, remaining=duration, **base)

        filed = _valid(milestone.filed_date)
        approved = _valid(milestone.approved_date)
        dates = dict(filed_date=filed, approved_date=approved, receipt_number=milestone.receipt_number)

        if milestone.status == MilestoneStatus.DENIED:
            return ReconciledStage(
                progress=StageProgress.NOT_STARTED,
                remaining=duration,
                note="Denied; this stage must be refiled",
                **base,
                **dates,
            )
        if approved is not None:
            return ReconciledStage(
                progress=StageProgress.DONE, remaining=DurationRange(), **base, **dates
            )
        if filed is not None:
            elapsed_years = max(0.0, (as_of - filed).days / _DAYS_PER_YEAR)
            remaining = DurationRange(
                min_years=round(max(0.0, duration.min_years - elapsed_years), 4),
                max_years=round(max(0.0, duration.max_years - elapsed_years), 4),
            )
            return ReconciledStage(
                progress=StageProgress.IN_PROGRESS, remaining=remaining, **base, **dates
            )
        if milestone.status in (MilestoneStatus.FILED, MilestoneStatus.APPROVED):
            return ReconciledStage(
                progress=StageProgress.IN_PROGRESS,
                remaining=duration,
                note="No usable dates recorded; assuming the full duration remains",
                **base,
                **dates,
            )
        return ReconciledStage(
            progress=StageProgress.NOT_STARTED, remaining=duration, **base, **dates
        )

    def _wait_stage(
        self, path: ComposedPath, stage: ComposedStage, effective_pd: MonthIndex | None
    ) -> ReconciledStage:
        base = dict(
            node_id=stage.node_id,
            display_name=stage.display_name,
            track=stage.track,
            duration=stage.duration,
            is_priority_wait=True,
        )
        pd = effective_pd if effective_pd is not None else path.priority_date
        if pd is None or path.eb_category is None:
            return ReconciledStage(
                progress=StageProgress.NOT_STARTED, remaining=stage.duration, **base
            )

        projection = self._backlog.project(path.eb_category, path.chargeability, pd)
        if not projection.needs_wait:
            return ReconciledStage(
                progress=StageProgress.DONE,
                remaining=DurationRange(),
                note="Final Action cutoff has reached your priority date",
                **base,
            )
        progress = StageProgress.IN_PROGRESS if effective_pd is not None else StageProgress.NOT_STARTED
        return ReconciledStage(
            progress=progress,
            remaining=projection.duration,
            note=f"{projection.months_behind} months behind the Final Action cutoff",
            **base,
        )

    @staticmethod
    def _close_passed_stages(stages: list[ReconciledStage]) -> list[ReconciledStage]:
        """Infer gc stages the case has already moved past.

        A wait is over once any later gc stage is done.  A stage with no
        recorded milestone is done once a later gc stage has been filed or
        approved: recruitment is behind a filed PERM whether or not the user
        entered it.
        """
        result = list(stages)
        for i, stage in enumerate(result):
            if stage.track != Track.GC:
                continue
            later = [s for s in result[i + 1:] if s.track == Track.GC and not s.is_priority_wait]
            if stage.is_priority_wait:
                passed = any(s.progress == StageProgress.DONE for s in later)
            else:
                passed = _unrecorded(stage) and any(
                    s.progress in (StageProgress.DONE, StageProgress.IN_PROGRESS) for s in later
                )
            if passed:
                update = {"progress": StageProgress.DONE, "remaining": DurationRange()}
                if not stage.is_priority_wait:
                    update["note"] = "Inferred from progress on a later stage"
                result[i] = stage.model_copy(update=update)
        return result

    @staticmethod
    def _layout_remaining(
        path: ComposedPath, stages: list[ReconciledStage]
    ) -> tuple[list[ReconciledStage], DurationRange]:
        by_id = {s.node_id: s for s in path.stages}
        gc = [s for s in stages if s.track == Track.GC]

        def items(use_max: bool) -> list[LayoutItem]:
            return [
                LayoutItem(
                    node_id=s.node_id,
                    track=Track.GC,
                    duration_years=s.remaining.max_years if use_max else s.remaining.min_years,
                    is_concurrent=by_id[s.node_id].is_concurrent,
                    after=by_id[s.node_id].after,
                )
                for s in gc
            ]

        max_layout = layout_tracks(items(use_max=True))
        min_layout = layout_tracks(items(use_max=False))
        laid_out = [
            s.model_copy(update={"start_years": max_layout.starts[s.node_id]})
            if s.node_id in max_layout.starts
            else s
            for s in stages
        ]
        remaining = DurationRange(
            min_years=min(min_layout.terminal, max_layout.terminal),
            max_years=max_layout.terminal,
        )
        return laid_out, remaining


def _is_approved(milestone: Milestone) -> bool:
    if milestone.status == MilestoneStatus.DENIED:
        return False
    return milestone.status == MilestoneStatus.APPROVED or isinstance(
        milestone.approved_date, ValidDate
    )


def _unrecorded(stage: ReconciledStage) -> bool:
    return (
        stage.progress == StageProgress.NOT_STARTED
        and stage.filed_date is None
        and stage.approved_date is None
        and stage.note is None
    )
