"""Shared HTTP plumbing for the bridge clients.

Both boundary clients use one ``httpx.Client`` per instance and the same
retry policy: transport errors and 5xx responses are retried with
exponential backoff, 4xx responses are not.
"""

from __future__ import annotations

import httpx
from tenacity import (
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from stateside.config import ProdConfig

USER_AGENT = "Mozilla/5.0 (compatible; Stateside/1.0)"


def is_retryable(exc: BaseException) -> bool:
    """Transport failures and server errors are worth another attempt."""
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return False


def retrying(prod_config: ProdConfig) -> Retrying:
    """A tenacity retry controller configured from ``prod_config``."""
    return Retrying(
        stop=stop_after_attempt(max(1, prod_config.http_max_attempts)),
        wait=wait_exponential(multiplier=prod_config.http_backoff_seconds, max=30),
        retry=retry_if_exception(is_retryable),
        reraise=True,
    )


def build_client(
    prod_config: ProdConfig,
    transport: httpx.BaseTransport | None = None,
    accept: str = "application/json",
) -> httpx.Client:
    """An ``httpx.Client`` with the configured timeout and headers."""
    return httpx.Client(
        timeout=prod_config.http_timeout_seconds,
        transport=transport,
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT, "Accept": accept},
    )
