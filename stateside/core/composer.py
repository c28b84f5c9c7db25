"""PathComposer — resolved template + data snapshot + velocity → dated path.

Composition happens in five steps:

1. Instantiate stages: the status lead-in followed by the template's gc
   stages, minus anything the variant suppresses.
2. Size every stage from live processing times (or the catalog's static
   range) and apply premium-processing / PERM-audit options.
3. Ask ``core.backlog.project_wait`` whether a priority-date wait is
   needed and rewire the adjudication stage accordingly.
4. Lay both tracks out on max durations (and again on min durations for
   the optimistic total), append the terminal stage, hold the final status
   stage until the green card.
5. Validate track ordering.  A violation is a defect in static data and
   raises ``TrackOrderError``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import date

from pydantic import BaseModel, ConfigDict

from stateside.config import config
from stateside.core.backlog import BacklogContext, WaitProjection
from stateside.core.eligibility import ResolvedTemplate
from stateside.core.velocity import VelocityEstimate
from stateside.data.defaults import DEFAULT_FORM_TIMINGS
from stateside.errors import TrackOrderError, UnknownStageError
from stateside.models.bulletin import (
    Chargeability,
    EBCategory,
    MonthIndex,
    format_month_index,
    month_index_of,
)
from stateside.models.paths import (
    ComposedPath,
    ComposedStage,
    DurationRange,
    VelocityInfo,
    WaitKind,
)
from stateside.models.processing import FormKey, ImmigrationDataSnapshot
from stateside.models.stages import (
    DEFAULT_STAGE_CATALOG,
    TERMINAL_NODE_ID,
    WAIT_NODE_ID,
    StageCategory,
    StageNode,
    Track,
)

logger = logging.getLogger(__name__)

VelocityLookup = Callable[[EBCategory, Chargeability], VelocityEstimate]

_EPSILON = 1e-6


class ComposeOptions(BaseModel):
    """User-selected what-if options applied to every composed path."""

    model_config = ConfigDict(frozen=True)

    premium_processing: bool = False
    assume_perm_audit: bool = False


# ------------------------------------------------------------------
# Layout (shared with the reconciler)
# ------------------------------------------------------------------


class LayoutItem(BaseModel):
    """One stage as the layout sees it: a duration and its ordering rules."""

    model_config = ConfigDict(frozen=True)

    node_id: str
    track: Track
    duration_years: float
    is_concurrent: bool = False
    after: str | None = None


class Layout(BaseModel):
    model_config = ConfigDict(frozen=True)

    starts: dict[str, float]
    ends: dict[str, float]
    terminal: float


def layout_tracks(items: Sequence[LayoutItem], gc_anchor: str | None = None) -> Layout:
    """Assign start offsets (years) to every item.

    Status items run back to back from zero.  Gc items start at the
    ``gc_anchor`` status item's start (zero without one); each
    non-concurrent item starts where the track's previous item ended, and a
    concurrent item starts with its prerequisite.  The terminal offset is
    the latest gc end.
    """
    starts: dict[str, float] = {}
    ends: dict[str, float] = {}

    cursor = 0.0
    for item in items:
        if item.track != Track.STATUS:
            continue
        starts[item.node_id] = cursor
        cursor += item.duration_years
        ends[item.node_id] = cursor
    status_end = cursor

    cursor = starts.get(gc_anchor, 0.0) if gc_anchor else 0.0
    terminal = cursor
    for item in items:
        if item.track != Track.GC:
            continue
        if item.is_concurrent and item.after in starts:
            start = starts[item.after]
        else:
            start = cursor
        end = start + item.duration_years
        starts[item.node_id] = start
        ends[item.node_id] = end
        cursor = max(cursor, end)
        terminal = max(terminal, end)

    has_gc = any(item.track == Track.GC for item in items)
    return Layout(
        starts={k: round(v, 4) for k, v in starts.items()},
        ends={k: round(v, 4) for k, v in ends.items()},
        terminal=round(terminal if has_gc else status_end, 4),
    )


def validate_track_order(stages: Sequence[ComposedStage]) -> None:
    """Raise ``TrackOrderError`` if any track overlaps or goes backwards."""
    by_id = {s.node_id: s for s in stages}
    for track in Track:
        previous: ComposedStage | None = None
        for stage in (s for s in stages if s.track == track):
            if stage.is_concurrent:
                prereq = by_id.get(stage.after or "")
                if prereq is not None and stage.start_years < prereq.start_years - _EPSILON:
                    raise TrackOrderError(
                        f"Concurrent stage {stage.node_id!r} starts before its "
                        f"prerequisite {prereq.node_id!r}",
                        {"track": track.value},
                    )
                continue
            if previous is not None and stage.start_years < previous.end_years - _EPSILON:
                raise TrackOrderError(
                    f"Stage {stage.node_id!r} starts before {previous.node_id!r} ends",
                    {"track": track.value, "start": stage.start_years, "previous_end": previous.end_years},
                )
            if not stage.is_terminal:
                previous = stage


# ------------------------------------------------------------------
# Composer
# ------------------------------------------------------------------


class _Slot(BaseModel):
    """Working state for one stage during composition."""

    node: StageNode
    track: Track
    duration: DurationRange
    is_concurrent: bool = False
    after: str | None = None
    notes: list[str] = []
    premium: bool = False
    wait: WaitProjection | None = None
    priority_date_str: str | None = None


class PathComposer:
    """Compose dated paths from resolved templates.

    Parameters
    ----------
    snapshot:
        Processing times and both bulletin charts.
    velocity_lookup:
        ``(category, chargeability) -> VelocityEstimate``.
    options:
        Premium processing / PERM audit what-ifs.
    """

    def __init__(
        self,
        snapshot: ImmigrationDataSnapshot,
        velocity_lookup: VelocityLookup,
        options: ComposeOptions | None = None,
        catalog: dict[str, StageNode] | None = None,
        premium_fee_usd: int | None = None,
        disclosure_threshold: float | None = None,
    ) -> None:
        self._snapshot = snapshot
        self._backlog = BacklogContext(snapshot, velocity_lookup, disclosure_threshold)
        self._options = options or ComposeOptions()
        self._catalog = catalog if catalog is not None else DEFAULT_STAGE_CATALOG
        self._premium_fee = (
            premium_fee_usd if premium_fee_usd is not None else config.premium_processing_fee_usd
        )

    @property
    def options(self) -> ComposeOptions:
        return self._options

    def compose_all(self, resolved: Sequence[ResolvedTemplate], as_of: date) -> list[ComposedPath]:
        return [self.compose(r, as_of) for r in resolved]

    def compose(self, resolved: ResolvedTemplate, as_of: date) -> ComposedPath:
        """Compose one path.  ``as_of`` is the date the projection starts."""
        template, variant = resolved.template, resolved.variant

        status_slots = [
            self._slot(node_id, Track.STATUS) for node_id in variant.status_lead_in
        ]
        gc_slots: list[_Slot] = []
        for ts in template.stages:
            if ts.node_id in variant.suppressed_stages:
                continue
            slot = self._slot(ts.node_id, ts.track)
            slot.is_concurrent = ts.is_concurrent
            slot.after = ts.after
            if ts.note:
                slot.notes.append(ts.note)
            gc_slots.append(slot)

        if variant.suppressed_stages:
            present = {s.node.node_id for s in gc_slots}
            for slot in gc_slots:
                if slot.is_concurrent and slot.after not in present:
                    slot.is_concurrent, slot.after = False, None
            if gc_slots:
                gc_slots[0].notes.append("Petition already approved; priority date retained")

        # Backlog decision
        priority_date: MonthIndex | None = None
        wait: WaitProjection | None = None
        concurrent_eligible = any(
            s.node.category == StageCategory.ADJUDICATION and s.is_concurrent for s in gc_slots
        )
        chargeability = variant.chargeability
        if template.has_wait_stage:
            assert template.eb_category is not None
            priority_date = (
                variant.priority_date
                if variant.priority_date is not None
                else month_index_of(as_of)
            )
            wait = self._backlog.project(template.eb_category, chargeability, priority_date)
            gc_slots = self._apply_wait(gc_slots, wait, priority_date)
            concurrent_eligible = wait.concurrent_filing_eligible

        self._annotate(status_slots, gc_slots, variant.has_lottery)

        slots = status_slots + gc_slots
        max_layout = layout_tracks(self._items(slots, use_max=True), variant.gc_anchor)
        min_layout = layout_tracks(self._items(slots, use_max=False), variant.gc_anchor)

        stages = [self._stage(slot, max_layout.starts[slot.node.node_id]) for slot in slots]
        if status_slots:
            stages[len(status_slots) - 1] = self._hold(
                stages[len(status_slots) - 1], max_layout.terminal
            )
        terminal = self._catalog[TERMINAL_NODE_ID]
        stages.append(
            ComposedStage(
                node_id=terminal.node_id,
                display_name=terminal.display_name,
                track=terminal.default_track,
                start_years=max_layout.terminal,
                duration=DurationRange(),
            )
        )
        validate_track_order(stages)

        cost = sum(slot.node.filing_fee_usd for slot in slots) + self._premium_fee * sum(
            1 for slot in slots if slot.premium
        )
        path = ComposedPath(
            path_id=template.template_id,
            name=template.name,
            stages=tuple(stages),
            total_years=DurationRange(
                min_years=min(min_layout.terminal, max_layout.terminal),
                max_years=max_layout.terminal,
            ),
            estimated_cost=cost,
            gc_category=template.gc_category,
            eb_category=template.eb_category,
            chargeability=chargeability,
            has_lottery=variant.has_lottery,
            is_self_petition=template.is_self_petition,
            concurrent_filing_eligible=concurrent_eligible,
            priority_date=priority_date,
            priority_date_str=format_month_index(priority_date) if priority_date is not None else None,
            priority_date_is_existing=variant.priority_date is not None,
            uses_default_data=self._snapshot.uses_defaults,
        )
        logger.info(
            "Composed %s: %d stages, %s, $%d%s",
            path.path_id,
            len(path.stages),
            path.total_years.display,
            path.estimated_cost,
            f", {wait.kind.value} wait" if wait is not None and wait.kind is not None else "",
        )
        return path

    # ------------------------------------------------------------------
    # Stage sizing
    # ------------------------------------------------------------------

    def _node(self, node_id: str) -> StageNode:
        node = self._catalog.get(node_id)
        if node is None:
            raise UnknownStageError(
                f"Unknown stage node {node_id!r}",
                {"known_nodes": sorted(self._catalog)},
            )
        return node

    def _slot(self, node_id: str, track: Track) -> _Slot:
        node = self._node(node_id)
        duration, premium = self.stage_duration(node)
        slot = _Slot(node=node, track=track, duration=duration, premium=premium, notes=[])
        if premium:
            slot.notes.append(
                f"Premium processing: {duration.display} (+${self._premium_fee:,})"
            )
        return slot

    def stage_duration(self, node: StageNode) -> tuple[DurationRange, bool]:
        """Duration of a catalog node under the current options.

        Returns the range and whether premium processing was applied.
        """
        if node.form is not None:
            form = node.form
            if form == FormKey.PERM and self._options.assume_perm_audit:
                form = FormKey.PERM_AUDIT
            timing = self._snapshot.processing_times.get(form)
            if self._options.premium_processing and node.supports_premium:
                days = node.premium_days or timing.premium_days
                if days:
                    return DurationRange.from_days(days), True
            return DurationRange.from_months(timing.min_months, timing.max_months), False
        if node.static_duration_months is not None:
            return DurationRange.from_months(*node.static_duration_months), False
        return DurationRange(), False

    # ------------------------------------------------------------------
    # Backlog wiring
    # ------------------------------------------------------------------

    def _apply_wait(
        self, gc_slots: list[_Slot], wait: WaitProjection, priority_date: MonthIndex
    ) -> list[_Slot]:
        adjudication = next(
            (i for i, s in enumerate(gc_slots) if s.node.category == StageCategory.ADJUDICATION),
            None,
        )
        if adjudication is None:
            return gc_slots

        i485 = gc_slots[adjudication]
        pd_str = format_month_index(priority_date)
        i485.priority_date_str = pd_str

        if not wait.needs_wait:
            petition = next(
                (s for s in reversed(gc_slots[:adjudication])
                 if s.node.category == StageCategory.PETITION),
                None,
            )
            if petition is not None:
                i485.is_concurrent = True
                i485.after = petition.node.node_id
                i485.notes.append("Priority date is current: file concurrently with the petition")
            else:
                i485.notes.append("Priority date is current: file now")
            return gc_slots

        wait_node = self._node(WAIT_NODE_ID)
        wait_slot = _Slot(
            node=wait_node,
            track=Track.GC,
            duration=wait.duration,
            wait=wait,
            priority_date_str=pd_str,
            notes=[],
        )
        if wait.kind == WaitKind.FILING:
            wait_slot.notes.append(
                f"Dates for Filing reached; waiting on Final Action ({wait.final_action.display})"
            )
            i485.is_concurrent = True
            i485.after = WAIT_NODE_ID
            i485.notes.append(
                "File under Dates for Filing; EAD and advance parole become available once filed"
            )
        else:
            wait_slot.notes.append(
                f"Waiting for the Final Action cutoff ({wait.final_action.display}) "
                f"to reach {pd_str}"
            )
        return gc_slots[:adjudication] + [wait_slot] + gc_slots[adjudication:]

    def _annotate(self, status_slots: list[_Slot], gc_slots: list[_Slot], has_lottery: bool) -> None:
        timings = self._snapshot.processing_times
        for slot in status_slots:
            if slot.node.node_id == "h1b":
                i129 = timings.timings.get(FormKey.I129, DEFAULT_FORM_TIMINGS[FormKey.I129])
                premium = f", premium {i129.premium_days} days" if i129.premium_days else ""
                slot.notes.append(
                    f"I-129 petition {i129.min_months:g}-{i129.max_months:g} mo{premium}"
                )
                if has_lottery:
                    slot.notes.append("Subject to the annual H-1B lottery")
        for slot in gc_slots:
            if slot.node.category == StageCategory.ADJUDICATION and slot.is_concurrent:
                i765 = timings.timings.get(FormKey.I765, DEFAULT_FORM_TIMINGS[FormKey.I765])
                slot.notes.append(
                    f"EAD (I-765) typically {i765.min_months:g}-{i765.max_months:g} mo after filing"
                )

    # ------------------------------------------------------------------
    # Output assembly
    # ------------------------------------------------------------------

    @staticmethod
    def _items(slots: list[_Slot], use_max: bool) -> list[LayoutItem]:
        return [
            LayoutItem(
                node_id=s.node.node_id,
                track=s.track,
                duration_years=s.duration.max_years if use_max else s.duration.min_years,
                is_concurrent=s.is_concurrent,
                after=s.after,
            )
            for s in slots
        ]

    @staticmethod
    def _stage(slot: _Slot, start: float) -> ComposedStage:
        wait = slot.wait
        velocity_info: VelocityInfo | None = wait.velocity_info if wait is not None else None
        return ComposedStage(
            node_id=slot.node.node_id,
            display_name=slot.node.display_name,
            track=slot.track,
            start_years=start,
            duration=slot.duration,
            is_priority_wait=wait is not None,
            is_concurrent=slot.is_concurrent,
            after=slot.after,
            note="; ".join(slot.notes) or None,
            priority_date_str=slot.priority_date_str,
            velocity_info=velocity_info,
            wait_kind=wait.kind if wait is not None else None,
        )

    @staticmethod
    def _hold(stage: ComposedStage, terminal: float) -> ComposedStage:
        """Stretch or trim the last status stage so it ends at the green card."""
        span = round(terminal - stage.start_years, 4)
        if span <= 0:
            return stage
        duration = DurationRange(
            min_years=min(stage.duration.min_years, span), max_years=span
        )
        note = "Held until the green card is issued"
        return stage.model_copy(
            update={
                "duration": duration,
                "note": f"{stage.note}; {note}" if stage.note else note,
            }
        )
