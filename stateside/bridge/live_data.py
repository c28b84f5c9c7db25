"""Live processing-time / visa-bulletin endpoint client.

The endpoint answers ``GET`` with ``{"success": true, "data": {...}}`` and
treats ``POST`` to the same URL as a forced refresh that bypasses its own
cache.  This client keeps an in-memory copy of the last good payload for
``cache_ttl_seconds`` and remembers it afterwards as last-known data.

``load_snapshot`` is the non-raising entry point the rest of the system
uses: a failed fetch degrades to last-known data, then to static defaults,
and the snapshot says so.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import httpx

from stateside.bridge.transport import build_client, retrying
from stateside.config import ProdConfig
from stateside.core.adapter import adapt_snapshot
from stateside.errors import LiveDataUnavailable
from stateside.models.processing import ImmigrationDataSnapshot

logger = logging.getLogger(__name__)


class LiveDataClient:
    """Fetch and cache the live data payload.

    Parameters
    ----------
    url:
        Endpoint URL.  Defaults to ``prod_config.live_data_url``.
    prod_config:
        Timeout, retry and cache settings.
    transport:
        Optional ``httpx`` transport (``httpx.MockTransport`` in tests).
    clock:
        Monotonic clock for cache expiry.
    """

    def __init__(
        self,
        url: str | None = None,
        *,
        prod_config: ProdConfig | None = None,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = prod_config or ProdConfig()
        self._url = url or self._config.live_data_url
        self._client = build_client(self._config, transport)
        self._clock = clock
        self._cached: dict[str, Any] | None = None
        self._cached_at: float | None = None
        self._last_fetched_at: datetime | None = None

    @property
    def url(self) -> str:
        return self._url

    @property
    def last_known(self) -> dict[str, Any] | None:
        """The last payload successfully fetched, however old."""
        return self._cached

    @property
    def last_fetched_at(self) -> datetime | None:
        return self._last_fetched_at

    def cache_valid(self) -> bool:
        if self._cached is None or self._cached_at is None:
            return False
        return self._clock() - self._cached_at < self._config.cache_ttl_seconds

    def fetch(self, force_refresh: bool = False) -> dict[str, Any]:
        """Return the payload, from cache when fresh.

        ``force_refresh=True`` skips the local cache and POSTs so the
        endpoint refreshes its own.

        Raises
        ------
        LiveDataUnavailable
            When the endpoint cannot be reached or returns an unusable body.
        """
        if not force_refresh and self.cache_valid():
            assert self._cached is not None
            return self._cached

        method = "POST" if force_refresh else "GET"
        try:
            for attempt in retrying(self._config):
                with attempt:
                    response = self._client.request(method, self._url)
                    response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            raise LiveDataUnavailable(
                f"Live data request failed: {exc}",
                {"url": self._url, "method": method},
            ) from exc
        except ValueError as exc:
            raise LiveDataUnavailable(
                "Live data response is not JSON", {"url": self._url}
            ) from exc

        if not isinstance(payload, dict) or payload.get("success") is False:
            raise LiveDataUnavailable(
                "Live data endpoint reported failure",
                {"url": self._url, "error": payload.get("error") if isinstance(payload, dict) else None},
            )

        self._cached = payload
        self._cached_at = self._clock()
        self._last_fetched_at = datetime.now(timezone.utc)
        logger.info("Fetched live data via %s %s", method, self._url)
        return payload

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> LiveDataClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def load_snapshot(client: LiveDataClient, force_refresh: bool = False) -> ImmigrationDataSnapshot:
    """Fetch and adapt live data, degrading instead of raising.

    Order of preference: fresh payload, last-known payload, static defaults.
    Anything but a fresh payload is marked ``uses_defaults``.
    """
    try:
        payload = client.fetch(force_refresh=force_refresh)
    except LiveDataUnavailable as exc:
        last_known = client.last_known
        if last_known is not None:
            logger.warning("Live data unavailable (%s); using last-known data", exc)
            snapshot = adapt_snapshot(last_known, fetched_at=client.last_fetched_at)
            return snapshot.model_copy(
                update={
                    "uses_defaults": True,
                    "defaulted_fields": snapshot.defaulted_fields + ("live_data",),
                }
            )
        logger.warning("Live data unavailable (%s); using static defaults", exc)
        return adapt_snapshot(None)

    snapshot = adapt_snapshot(payload)
    if snapshot.fetched_at is None:
        snapshot = snapshot.model_copy(update={"fetched_at": client.last_fetched_at})
    if snapshot.uses_defaults:
        logger.warning(
            "Live data incomplete; %d field(s) defaulted", len(snapshot.defaulted_fields)
        )
    return snapshot
