"""Shared test fixtures for Stateside."""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from typing import Any

import httpx
import pytest

from stateside.config import ProdConfig
from stateside.core.adapter import adapt_snapshot
from stateside.core.backlog import BacklogContext
from stateside.core.composer import ComposeOptions, PathComposer
from stateside.core.eligibility import EligibilityResolver, ResolvedTemplate
from stateside.core.engine import TimelineEngine
from stateside.core.velocity import VelocityEstimate, VelocityModel
from stateside.data.bulletin_history import DEFAULT_BULLETIN_HISTORY
from stateside.data.defaults import DEFAULT_PROCESSING_TIMES
from stateside.models.bulletin import (
    BulletinSample,
    Chargeability,
    Current,
    Cutoff,
    EBCategory,
    HistoricalBulletinSeries,
    PriorityDateTable,
    month_index,
    month_index_of,
)
from stateside.models.processing import ImmigrationDataSnapshot
from stateside.models.profile import FilterState

AS_OF = date(2025, 10, 15)


@pytest.fixture
def as_of() -> date:
    """A fixed projection date, one bulletin after the bundled history ends."""
    return AS_OF


@pytest.fixture
def prod_config() -> ProdConfig:
    """Config with no retry backoff so failing HTTP tests run instantly."""
    return ProdConfig(http_backoff_seconds=0, http_max_attempts=2)


@pytest.fixture
def snapshot() -> ImmigrationDataSnapshot:
    """The static-default snapshot."""
    return adapt_snapshot(None)


@pytest.fixture
def current_snapshot() -> ImmigrationDataSnapshot:
    """Default processing times with every chart cell current."""
    return ImmigrationDataSnapshot(
        processing_times=DEFAULT_PROCESSING_TIMES,
        final_action=PriorityDateTable(),
        dates_for_filing=PriorityDateTable(),
    )


@pytest.fixture
def velocity(as_of: date) -> dict[tuple[EBCategory, Chargeability], VelocityEstimate]:
    """Velocity estimates over the bundled history."""
    return VelocityModel(window=12, fallback_rate=6.0).estimate_all(
        DEFAULT_BULLETIN_HISTORY, month_index_of(as_of)
    )


@pytest.fixture
def backlog(
    snapshot: ImmigrationDataSnapshot,
    velocity: dict[tuple[EBCategory, Chargeability], VelocityEstimate],
) -> BacklogContext:
    return BacklogContext(snapshot, lambda c, ch: velocity[(c, ch)], 0.7)


@pytest.fixture
def engine(prod_config: ProdConfig) -> TimelineEngine:
    """An engine on static defaults and the bundled history."""
    return TimelineEngine(prod_config=prod_config)


@pytest.fixture
def resolver() -> EligibilityResolver:
    return EligibilityResolver()


# ---------------------------------------------------------------------------
# Factories shared across test modules
# ---------------------------------------------------------------------------


@pytest.fixture
def make_profile() -> Callable[..., FilterState]:
    """Factory fixture: build a FilterState with overrides."""

    def _factory(**overrides: Any) -> FilterState:
        return FilterState(**overrides)

    return _factory


@pytest.fixture
def make_composer(
    velocity: dict[tuple[EBCategory, Chargeability], VelocityEstimate],
) -> Callable[..., PathComposer]:
    """Factory fixture: a PathComposer over a snapshot (defaults if omitted)."""

    def _factory(
        snapshot: ImmigrationDataSnapshot | None = None,
        options: ComposeOptions | None = None,
        **kwargs: Any,
    ) -> PathComposer:
        return PathComposer(
            snapshot or adapt_snapshot(None),
            lambda c, ch: velocity[(c, ch)],
            options,
            premium_fee_usd=2805,
            disclosure_threshold=0.7,
            **kwargs,
        )

    return _factory


@pytest.fixture
def resolve_one(resolver: EligibilityResolver) -> Callable[[FilterState, str], ResolvedTemplate]:
    """Resolve a profile and return the named template, failing if absent."""

    def _resolve(profile: FilterState, template_id: str) -> ResolvedTemplate:
        resolved = {r.template_id: r for r in resolver.resolve(profile)}
        assert template_id in resolved, f"{template_id} not admissible: {sorted(resolved)}"
        return resolved[template_id]

    return _resolve


@pytest.fixture
def make_series() -> Callable[..., HistoricalBulletinSeries]:
    """Factory fixture: a monthly series from a list of cutoffs.

    Each cutoff is ``(year, month)``, ``"C"`` for current.
    """

    def _factory(
        cutoffs: list[Any],
        start: tuple[int, int] = (2024, 10),
        category: EBCategory = EBCategory.EB2,
        chargeability: Chargeability = Chargeability.INDIA,
    ) -> HistoricalBulletinSeries:
        first = month_index(*start)
        samples = tuple(
            BulletinSample(
                bulletin_month=first + i,
                cutoff=Current() if c == "C" else Cutoff(month_index=month_index(*c)),
            )
            for i, c in enumerate(cutoffs)
        )
        return HistoricalBulletinSeries(
            category=category, chargeability=chargeability, samples=samples
        )

    return _factory


@pytest.fixture
def make_transport() -> Callable[..., httpx.MockTransport]:
    """Factory fixture: a MockTransport that records every request."""

    def _factory(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.MockTransport:
        calls: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return handler(request)

        transport = httpx.MockTransport(_record)
        transport.calls = calls  # type: ignore[attr-defined]
        return transport

    return _factory
