"""Stateside: green-card pathway timelines.

Given an applicant profile, Stateside enumerates every admissible pathway
(employment, family, investment, self-petition), composes each one into a
two-track timeline of status and green-card stages, and estimates priority
date waits from the movement of the Visa Bulletin.  A tracked case can be
reconciled against its planned path to show what is left.

  - Static stage catalog and path templates, resolved per profile
  - Velocity model over historical Final Action cutoffs, with confidence
  - Concurrent filing from the Dates for Filing chart
  - Priority date retention and porting (180-day rule)
  - Live processing times with last-known and static fallbacks
  - USCIS case-status lookup
  - Deterministic projections with input/output fingerprints
"""

__version__ = "0.1.0"
__description__ = "Green-card pathway timeline projection from profile and Visa Bulletin data"

from stateside.core.engine import Projection, TimelineEngine
from stateside.models.profile import FilterState
from stateside.cli.app import app as cli

__all__ = ["TimelineEngine", "Projection", "FilterState", "cli", "__version__"]
