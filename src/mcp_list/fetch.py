"""HTTP fetching with progressive timeouts and retry on network failures.

Only failures where no response arrived are retried. Any HTTP response,
including 404 and 5xx, goes straight back to the caller, which decides what
the status means for its source.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Any

import httpx

from mcp_list import config

logger = logging.getLogger(__name__)


class NetworkErrorKind(enum.Enum):
    TIMEOUT = "timeout"
    CONN_RESET = "conn_reset"
    CONN_REFUSED = "conn_refused"
    ABORTED = "aborted"
    GENERIC_FETCH_FAILURE = "generic_fetch_failure"
    OTHER = "other"

    @property
    def retriable(self) -> bool:
        return self is not NetworkErrorKind.OTHER


class FetchError(Exception):
    """Raised when every attempt failed with a retriable network error."""

    def __init__(self, url: str, kind: NetworkErrorKind, attempts: int) -> None:
        super().__init__(
            f"{kind.value} after {attempts} attempt(s) fetching {url}"
        )
        self.url = url
        self.kind = kind
        self.attempts = attempts


def classify_error(exc: BaseException) -> NetworkErrorKind:
    """Map an exception raised by the I/O layer onto a NetworkErrorKind."""
    # asyncio.wait_for cancelling the attempt
    if isinstance(exc, asyncio.TimeoutError):
        return NetworkErrorKind.ABORTED
    if isinstance(exc, httpx.TimeoutException):
        return NetworkErrorKind.TIMEOUT
    if isinstance(exc, ConnectionRefusedError):
        return NetworkErrorKind.CONN_REFUSED
    if isinstance(exc, ConnectionResetError):
        return NetworkErrorKind.CONN_RESET
    if isinstance(exc, httpx.TransportError):
        message = str(exc).lower()
        if "refused" in message:
            return NetworkErrorKind.CONN_REFUSED
        if "reset" in message:
            return NetworkErrorKind.CONN_RESET
        return NetworkErrorKind.GENERIC_FETCH_FAILURE
    if isinstance(exc, OSError):
        return NetworkErrorKind.GENERIC_FETCH_FAILURE
    return NetworkErrorKind.OTHER


async def sleep(seconds: float) -> None:
    await asyncio.sleep(seconds)


async def fetch_with_retry(
    client: httpx.AsyncClient,
    url: str,
    *,
    max_retries: int = config.FETCH_MAX_RETRIES,
    base_timeout: float = config.FETCH_BASE_TIMEOUT,
    method: str = "GET",
    **kwargs: Any,
) -> httpx.Response:
    """Send a request, retrying on network-level failures.

    Attempt ``n`` (1-indexed) is cancelled after ``base_timeout * n`` seconds
    and is followed, on a retriable failure, by a ``n`` second pause.

    Raises:
        FetchError: the last attempt still failed with a retriable error.
        Exception: any non-retriable error, unchanged, on first occurrence.
    """
    for attempt in range(1, max_retries + 1):
        timeout = base_timeout * attempt
        try:
            return await asyncio.wait_for(
                client.request(method, url, timeout=timeout, **kwargs),
                timeout,
            )
        except Exception as exc:
            kind = classify_error(exc)
            if not kind.retriable:
                raise
            if attempt == max_retries:
                logger.warning(
                    "Max retries (%d) exceeded for %s", max_retries, url
                )
                raise FetchError(url, kind, attempt) from exc
            logger.info(
                "Retry %d/%d after %s (timeout %.0fs) for %s",
                attempt, max_retries, kind.value, timeout, url[:100],
            )
            await sleep(config.FETCH_BACKOFF * attempt)

    raise ValueError(f"max_retries must be at least 1, got {max_retries}")
