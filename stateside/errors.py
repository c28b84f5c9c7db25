"""Exception hierarchy for the Stateside projection engine.

Four failure families, handled very differently:

* input-malformed — bad receipt numbers.  Free-form dates never raise; they
  degrade to ``InvalidDate`` inside the case models.
* data-unavailable — live snapshot fetch failed.  Caught at the bridge and
  replaced by last-known or static data.
* programming-invariant — static catalog/template data is wrong.  Fatal.
* upstream lookup — the case-status source is unreachable or unparseable.
"""

from __future__ import annotations

from typing import Any


class StatesideError(Exception):
    """Base exception for all Stateside errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} | context={self.context}"
        return self.message


# ---------------------------------------------------------------------------
# Input-malformed
# ---------------------------------------------------------------------------


class InvalidReceiptNumberError(StatesideError, ValueError):
    """Raised when a receipt number does not match ``^[A-Z]{3}\\d{10}$``."""


# ---------------------------------------------------------------------------
# Data-unavailable
# ---------------------------------------------------------------------------


class LiveDataUnavailable(StatesideError):
    """Raised when the live processing-time endpoint cannot be read."""


# ---------------------------------------------------------------------------
# Programming-invariant violations
# ---------------------------------------------------------------------------


class InvariantViolation(StatesideError, RuntimeError):
    """Base class for defects in static catalog or template data."""


class UnknownStageError(InvariantViolation):
    """Raised when a template references a node id missing from the catalog."""


class UnknownTemplateError(InvariantViolation):
    """Raised when a template id has no eligibility rule (or vice versa)."""


class TrackOrderError(InvariantViolation):
    """Raised when a composed track's stages overlap or go backwards."""


# ---------------------------------------------------------------------------
# Upstream lookup failures
# ---------------------------------------------------------------------------


class CaseStatusUnavailable(StatesideError):
    """Raised when the case-status source is unreachable or unparseable.

    Carries the receipt number and the request URL so callers can offer a
    manual-check link.  This is never a "denied" outcome.
    """

    def __init__(self, message: str, *, receipt_number: str, url: str) -> None:
        super().__init__(message, {"receipt_number": receipt_number, "url": url})
        self.receipt_number = receipt_number
        self.url = url
