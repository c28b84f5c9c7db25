"""USCIS case-status lookup.

Given a receipt number, fetch the public case-status page and reduce it to a
normalized status plus the agency's own description.  The page is scraped
with BeautifulSoup; USCIS changes its markup without notice, so there are
two parsing strategies and a failure mode that is explicit rather than
guessed.

An unreachable or unparseable page raises ``CaseStatusUnavailable`` with the
manual-check URL.  It is never reported as ``denied``.
"""

from __future__ import annotations

import logging
import re
import time
from datetime import date, datetime
from enum import Enum
from typing import Any

import httpx
from bs4 import BeautifulSoup
from pydantic import BaseModel, ConfigDict

from stateside.bridge.transport import build_client, retrying
from stateside.config import ProdConfig
from stateside.errors import CaseStatusUnavailable, InvalidReceiptNumberError
from stateside.models.case import RECEIPT_NUMBER_RE

logger = logging.getLogger(__name__)

MAX_BULK_RECEIPTS = 5

SERVICE_CENTERS: dict[str, str] = {
    "SRC": "Texas Service Center",
    "LIN": "Nebraska Service Center",
    "NSC": "Nebraska Service Center",
    "NBC": "National Benefits Center",
    "WAC": "California Service Center",
    "EAC": "Vermont Service Center",
    "IOE": "USCIS Online (ELIS)",
    "MSC": "Missouri Service Center",
    "YSC": "Potomac Service Center",
}

_FORM_RE = re.compile(r"Form\s+(I-\d+\w*)", re.IGNORECASE)
_DATE_RE = re.compile(
    r"(January|February|March|April|May|June|July|August|September|October|"
    r"November|December)\s+\d{1,2},\s+\d{4}",
    re.IGNORECASE,
)


class CaseStatusKind(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    RFE_ISSUED = "rfe_issued"
    RFE_RESPONSE_FILED = "rfe_response_filed"
    OTHER = "other"


# Exact page titles (lower-cased) → status.
STATUS_MAPPING: dict[str, CaseStatusKind] = {
    "case was received": CaseStatusKind.PENDING,
    "case was approved": CaseStatusKind.APPROVED,
    "case was denied": CaseStatusKind.DENIED,
    "request for evidence was sent": CaseStatusKind.RFE_ISSUED,
    "response to uscis' request for evidence was received": CaseStatusKind.RFE_RESPONSE_FILED,
    "card is being produced": CaseStatusKind.APPROVED,
    "card was delivered to me by the post office": CaseStatusKind.APPROVED,
    "card was mailed to me": CaseStatusKind.APPROVED,
    "fingerprint fee was received": CaseStatusKind.PENDING,
    "case is ready to be scheduled for an interview": CaseStatusKind.PENDING,
    "interview was scheduled": CaseStatusKind.PENDING,
    "interview was completed and my case must be reviewed": CaseStatusKind.PENDING,
    "decision": CaseStatusKind.OTHER,
}

_STATUS_DESCRIPTIONS: dict[CaseStatusKind, str] = {
    CaseStatusKind.PENDING: "Your case is being processed.",
    CaseStatusKind.APPROVED: "Your case has been approved.",
    CaseStatusKind.DENIED: "Your case has been denied.",
    CaseStatusKind.RFE_ISSUED: "USCIS needs more evidence. Check your mail for details.",
    CaseStatusKind.RFE_RESPONSE_FILED: "Your RFE response has been received.",
    CaseStatusKind.OTHER: "",
}


class ReceiptInfo(BaseModel):
    """What a receipt number says about where and when a case was filed."""

    model_config = ConfigDict(frozen=True)

    receipt_number: str
    prefix: str
    service_center: str | None
    fiscal_year: int


class CaseStatusResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    receipt_number: str
    status: CaseStatusKind
    title: str
    description: str
    form_type: str | None = None
    last_updated: date | None = None
    source_url: str


def parse_receipt_number(raw: Any) -> ReceiptInfo:
    """Validate and decode a receipt number (``^[A-Z]{3}\\d{10}$``).

    Raises
    ------
    InvalidReceiptNumberError
        When the input is not three letters followed by ten digits.
    """
    text = raw.strip().upper() if isinstance(raw, str) else ""
    if not RECEIPT_NUMBER_RE.match(text):
        raise InvalidReceiptNumberError(
            "Invalid receipt number format. Expected 3 letters + 10 digits "
            "(e.g. SRC2412345678)",
            {"receipt_number": raw},
        )
    prefix = text[:3]
    return ReceiptInfo(
        receipt_number=text,
        prefix=prefix,
        service_center=SERVICE_CENTERS.get(prefix),
        fiscal_year=2000 + int(text[3:5]),
    )


def classify_status(title: str) -> CaseStatusKind:
    """Map a status page title to a normalized status."""
    key = " ".join(title.split()).lower()
    if key in STATUS_MAPPING:
        return STATUS_MAPPING[key]
    if "denied" in key or "rejected" in key:
        return CaseStatusKind.DENIED
    if "response" in key and "evidence" in key:
        return CaseStatusKind.RFE_RESPONSE_FILED
    if "request for evidence" in key or "request for initial evidence" in key:
        return CaseStatusKind.RFE_ISSUED
    if "approved" in key or key.startswith("card was") or "card is being" in key:
        return CaseStatusKind.APPROVED
    if "received" in key or "interview" in key or "fingerprint" in key:
        return CaseStatusKind.PENDING
    return CaseStatusKind.OTHER


def _parse_long_date(text: str) -> date | None:
    match = _DATE_RE.search(text)
    if match is None:
        return None
    cleaned = " ".join(match.group(0).split())
    try:
        return datetime.strptime(cleaned.title(), "%B %d, %Y").date()
    except ValueError:
        return None


def parse_status_page(html: str) -> tuple[str, str] | None:
    """Extract ``(title, description)`` from a status page, or ``None``."""
    soup = BeautifulSoup(html, "html.parser")

    heading = soup.find("h1", class_="appointment-sec-head")
    if heading is not None:
        content = soup.find("p", class_="appointment-sec-content")
        description = content.get_text(" ", strip=True) if content is not None else ""
        title = heading.get_text(" ", strip=True)
        return (title, description) if title else None

    for container in soup.find_all("div", class_="text-center"):
        alt = container.find("h1")
        if alt is not None and alt.get_text(strip=True):
            return alt.get_text(" ", strip=True), ""
    return None


class CaseStatusClient:
    """Look up receipt numbers on the USCIS case-status page.

    Parameters
    ----------
    prod_config:
        Base URL, timeout and retry settings.
    transport:
        Optional ``httpx`` transport (``httpx.MockTransport`` in tests).
    request_delay_seconds:
        Pause between requests in ``lookup_many``.
    """

    def __init__(
        self,
        *,
        prod_config: ProdConfig | None = None,
        transport: httpx.BaseTransport | None = None,
        request_delay_seconds: float = 0.5,
    ) -> None:
        self._config = prod_config or ProdConfig()
        self._client = build_client(
            self._config,
            transport,
            accept="text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        )
        self._delay = request_delay_seconds

    def status_url(self, receipt_number: str) -> str:
        """The manual-check URL for a receipt number."""
        return f"{self._config.case_status_url}?appReceiptNum={receipt_number}"

    def lookup(self, receipt_number: str) -> CaseStatusResult:
        """Fetch and normalize the status of one case.

        Raises
        ------
        InvalidReceiptNumberError
            When the receipt number is malformed (nothing is fetched).
        CaseStatusUnavailable
            When the page cannot be fetched or parsed.
        """
        info = parse_receipt_number(receipt_number)
        receipt = info.receipt_number
        url = self.status_url(receipt)

        try:
            for attempt in retrying(self._config):
                with attempt:
                    response = self._client.get(
                        self._config.case_status_url, params={"appReceiptNum": receipt}
                    )
                    response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Case status fetch failed for %s: %s", receipt, exc)
            raise CaseStatusUnavailable(
                "Could not retrieve case status; check the USCIS website directly",
                receipt_number=receipt,
                url=url,
            ) from exc

        parsed = parse_status_page(response.text)
        if parsed is None:
            logger.warning("Case status page for %s could not be parsed", receipt)
            raise CaseStatusUnavailable(
                "Case status page could not be parsed; check the USCIS website directly",
                receipt_number=receipt,
                url=url,
            )

        title, description = parsed
        status = classify_status(title)
        form = _FORM_RE.search(description)
        return CaseStatusResult(
            receipt_number=receipt,
            status=status,
            title=title,
            description=description or _STATUS_DESCRIPTIONS[status] or title,
            form_type=form.group(1).upper() if form else None,
            last_updated=_parse_long_date(description),
            source_url=url,
        )

    def lookup_many(self, receipt_numbers: list[str]) -> list[CaseStatusResult | CaseStatusUnavailable]:
        """Look up several cases.

        Every receipt is validated before anything is fetched.  Per-case
        failures are returned in place as ``CaseStatusUnavailable``.

        Raises
        ------
        ValueError
            When more than ``MAX_BULK_RECEIPTS`` receipts are given.
        InvalidReceiptNumberError
            When any receipt number is malformed.
        """
        if len(receipt_numbers) > MAX_BULK_RECEIPTS:
            raise ValueError(f"Maximum {MAX_BULK_RECEIPTS} receipt numbers per request")
        invalid = [r for r in receipt_numbers if not RECEIPT_NUMBER_RE.match(str(r).strip().upper())]
        if invalid:
            raise InvalidReceiptNumberError(
                f"Invalid receipt numbers: {', '.join(map(str, invalid))}",
                {"invalid": invalid},
            )

        results: list[CaseStatusResult | CaseStatusUnavailable] = []
        for i, receipt in enumerate(receipt_numbers):
            try:
                results.append(self.lookup(receipt))
            except CaseStatusUnavailable as exc:
                results.append(exc)
            if self._delay > 0 and i < len(receipt_numbers) - 1:
                time.sleep(self._delay)
        return results

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> CaseStatusClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
