"""ProjectionSession — last-write-wins publication of engine results.

Inputs (profile edits, a refreshed snapshot) can arrive while an earlier
projection is still being consumed.  Each computation takes a generation
number from ``begin()``; ``publish()`` accepts a result only if no newer
computation has started since.  Stale results are discarded, never shown.
"""

from __future__ import annotations

import logging
from datetime import date

from stateside.core.composer import ComposeOptions
from stateside.core.engine import Projection, TimelineEngine
from stateside.models.case import TrackedCase
from stateside.models.profile import FilterState

logger = logging.getLogger(__name__)


class ProjectionSession:
    """Holds the latest published projection for one user session."""

    def __init__(self, engine: TimelineEngine) -> None:
        self._engine = engine
        self._generation = 0
        self._latest: Projection | None = None
        self._latest_generation = 0

    @property
    def engine(self) -> TimelineEngine:
        return self._engine

    @property
    def latest(self) -> Projection | None:
        return self._latest

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def published_generation(self) -> int:
        """Generation of ``latest``; 0 before anything is published."""
        return self._latest_generation

    def use_engine(self, engine: TimelineEngine) -> None:
        """Swap in an engine built on a newer snapshot."""
        self._engine = engine

    def begin(self) -> int:
        """Start a computation and return its generation number."""
        self._generation += 1
        return self._generation

    def publish(self, generation: int, projection: Projection) -> bool:
        """Publish a result.  Returns False if a newer computation has begun."""
        if generation != self._generation:
            logger.info(
                "Discarding stale projection (generation %d, latest %d)",
                generation, self._generation,
            )
            return False
        self._latest = projection
        self._latest_generation = generation
        return True

    def run(
        self,
        profile: FilterState,
        as_of: date,
        options: ComposeOptions | None = None,
        tracked_case: TrackedCase | None = None,
    ) -> Projection | None:
        """Begin, compute and publish in one step."""
        generation = self.begin()
        projection = self._engine.project(profile, as_of, options, tracked_case)
        return projection if self.publish(generation, projection) else None
