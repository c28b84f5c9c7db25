"""TimelineEngine — one total, deterministic recomputation of every path.

The engine wires the five components together:

    profile ──► EligibilityResolver ──► PathComposer ──► CaseReconciler
                                           ▲                  ▲
    snapshot ──────────────────────────────┤                  │
    history ──► VelocityModel ─────────────┴── BacklogContext ┘

Each call to ``project`` recomputes from scratch; nothing is cached between
calls and nothing reads the clock.  The result carries input and output
fingerprints so callers (and tests) can check reproducibility.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date

from pydantic import BaseModel, ConfigDict

from stateside.config import ProdConfig
from stateside.core.adapter import adapt_snapshot
from stateside.core.backlog import BacklogContext
from stateside.core.composer import ComposeOptions, PathComposer
from stateside.core.eligibility import EligibilityResolver, apply_tracked_case
from stateside.core.hasher import compute_input_hash, compute_output_hash
from stateside.core.reconciler import CaseReconciler
from stateside.core.velocity import VelocityEstimate, VelocityModel
from stateside.data.bulletin_history import DEFAULT_BULLETIN_HISTORY
from stateside.models.bulletin import (
    BulletinSample,
    Chargeability,
    EBCategory,
    HistoricalBulletinSeries,
    month_index_of,
)
from stateside.models.case import ReconciledPath, TrackedCase
from stateside.models.paths import ComposedPath
from stateside.models.processing import ImmigrationDataSnapshot
from stateside.models.profile import FilterState

logger = logging.getLogger(__name__)

History = Mapping[tuple[EBCategory, Chargeability], HistoricalBulletinSeries]


class Projection(BaseModel):
    """One complete, immutable result of the engine."""

    model_config = ConfigDict(frozen=True)

    as_of: date
    profile: FilterState
    options: ComposeOptions
    paths: tuple[ComposedPath, ...]
    reconciled: tuple[ReconciledPath, ...] = ()
    velocity: tuple[VelocityEstimate, ...] = ()
    uses_default_data: bool = False
    defaulted_fields: tuple[str, ...] = ()
    input_hash: str
    output_hash: str

    def get_path(self, path_id: str) -> ComposedPath | None:
        return next((p for p in self.paths if p.path_id == path_id), None)

    def get_reconciled(self, path_id: str) -> ReconciledPath | None:
        return next((r for r in self.reconciled if r.path_id == path_id), None)

    @property
    def path_ids(self) -> list[str]:
        return [p.path_id for p in self.paths]


def extend_history(history: History, snapshot: ImmigrationDataSnapshot) -> dict:
    """Append the live Final Action chart to the history as a new sample.

    Only cells that came from live data are appended, and only when the
    snapshot's bulletin month is newer than the series' latest sample.  The
    bulletin month is the one the payload states; without it, the month of
    ``fetched_at`` stands in, which files a bulletin published ahead of its
    month one month early.
    """
    result = dict(history)
    if "final_action" in snapshot.defaulted_fields:
        return result
    if snapshot.bulletin_month is not None:
        bulletin_month = snapshot.bulletin_month
    elif snapshot.fetched_at is not None:
        bulletin_month = month_index_of(snapshot.fetched_at.date())
    else:
        return result
    for category in EBCategory:
        for chargeability in Chargeability:
            field = f"final_action.{category.value}.{chargeability.value}"
            if field in snapshot.defaulted_fields:
                continue
            key = (category, chargeability)
            series = result.get(
                key, HistoricalBulletinSeries(category=category, chargeability=chargeability)
            )
            if series.samples and bulletin_month <= series.ordered()[-1].bulletin_month:
                continue
            result[key] = series.appended(
                BulletinSample(
                    bulletin_month=bulletin_month,
                    cutoff=snapshot.final_action.lookup(category, chargeability),
                )
            )
    return result


class TimelineEngine:
    """Compose and reconcile every admissible path for a profile.

    Parameters
    ----------
    snapshot:
        Processing times and charts.  Static defaults when not provided.
    history:
        Bulletin history per pair.  The bundled approximate history when
        not provided.
    prod_config:
        Runtime configuration (velocity window, fees, disclosure threshold).
    """

    def __init__(
        self,
        snapshot: ImmigrationDataSnapshot | None = None,
        history: History | None = None,
        *,
        resolver: EligibilityResolver | None = None,
        prod_config: ProdConfig | None = None,
    ) -> None:
        self._prod_config = prod_config or ProdConfig()
        self._snapshot = snapshot or adapt_snapshot(None)
        self._history = extend_history(
            history if history is not None else DEFAULT_BULLETIN_HISTORY, self._snapshot
        )
        self._resolver = resolver or EligibilityResolver()
        self._velocity_model = VelocityModel(
            window=self._prod_config.velocity_window,
            fallback_rate=self._prod_config.fallback_velocity_months_per_year,
        )

    @property
    def snapshot(self) -> ImmigrationDataSnapshot:
        return self._snapshot

    def velocity(self, as_of: date) -> dict[tuple[EBCategory, Chargeability], VelocityEstimate]:
        return self._velocity_model.estimate_all(self._history, month_index_of(as_of))

    def project(
        self,
        profile: FilterState,
        as_of: date,
        options: ComposeOptions | None = None,
        tracked_case: TrackedCase | None = None,
    ) -> Projection:
        """Run the full pipeline for one profile.

        When a tracked case is given, an approved petition in it is first
        folded into the profile, then the planned path (or every path if
        none is planned) is reconciled against it.
        """
        options = options or ComposeOptions()
        effective_profile = (
            apply_tracked_case(profile, tracked_case) if tracked_case is not None else profile
        )

        estimates = self.velocity(as_of)
        backlog = BacklogContext(
            self._snapshot,
            lambda category, chargeability: estimates[(category, chargeability)],
            self._prod_config.confidence_disclosure_threshold,
        )
        composer = PathComposer(
            self._snapshot,
            backlog.velocity,
            options,
            premium_fee_usd=self._prod_config.premium_processing_fee_usd,
            disclosure_threshold=self._prod_config.confidence_disclosure_threshold,
        )
        paths = composer.compose_all(self._resolver.resolve(effective_profile), as_of)

        reconciled: list[ReconciledPath] = []
        if tracked_case is not None:
            reconciler = CaseReconciler(backlog)
            targets = [p for p in paths if p.path_id == tracked_case.planned_path_id] or paths
            reconciled = [reconciler.reconcile(p, tracked_case, as_of) for p in targets]

        ordered_keys = sorted(estimates, key=lambda k: (k[0].value, k[1].value))
        velocity = tuple(estimates[k] for k in ordered_keys)

        input_hash = compute_input_hash(
            {
                "as_of": as_of.isoformat(),
                "profile": profile,
                "options": options,
                "snapshot": self._snapshot,
                "history": [self._history[k] for k in sorted(
                    self._history, key=lambda k: (k[0].value, k[1].value)
                )],
                "tracked_case": tracked_case,
            }
        )
        output_hash = compute_output_hash(
            {"paths": list(paths), "reconciled": reconciled, "velocity": list(velocity)}
        )

        logger.info(
            "Projection as of %s: %d paths, %d reconciled, defaults=%s, input=%s",
            as_of.isoformat(),
            len(paths),
            len(reconciled),
            self._snapshot.uses_defaults,
            input_hash[:12],
        )
        return Projection(
            as_of=as_of,
            profile=effective_profile,
            options=options,
            paths=tuple(paths),
            reconciled=tuple(reconciled),
            velocity=velocity,
            uses_default_data=self._snapshot.uses_defaults,
            defaulted_fields=self._snapshot.defaulted_fields,
            input_hash=input_hash,
            output_hash=output_hash,
        )
