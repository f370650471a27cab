"""Abstract base for source enrichers."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx
from pydantic import BaseModel

from mcp_list import config
from mcp_list.fetch import FetchError, fetch_with_retry
from mcp_list.output.models import ServerRecord


class Enricher(ABC):
    """Base class for per-source enrichers.

    Each enricher looks at one server record, fetches metadata from a single
    external source, and returns the slot model to store under
    ``Enrichment.<key>``, or None when the source has nothing for it.
    Enrichers never raise for network or HTTP failures.
    """

    key: str = ""
    label: str = ""
    # HTTP statuses this source uses to signal throttling.
    rate_limit_statuses: tuple[int, ...] = (429,)

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client
        self.rate_limited = False
        self.logger = logging.getLogger(
            f"{self.__class__.__module__}.{self.__class__.__name__}"
        )

    @abstractmethod
    async def enrich(self, record: ServerRecord) -> BaseModel | None:
        ...

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def find_package(record: ServerRecord, registry_type: str) -> str | None:
        """Identifier of the first package of the given registry type."""
        for pkg in record.packages:
            if pkg.registry_type == registry_type and pkg.identifier:
                return pkg.identifier
        return None

    def _headers(self) -> dict[str, str]:
        return {"Accept": "application/json", "User-Agent": config.USER_AGENT}

    async def _get(self, url: str, **kwargs: Any) -> httpx.Response | None:
        """GET through fetch_with_retry; None if the network gave up."""
        kwargs.setdefault("headers", self._headers())
        try:
            return await fetch_with_retry(self._client, url, **kwargs)
        except (FetchError, httpx.HTTPError) as exc:
            self.logger.warning("[%s] Request failed for %s: %s", self.label, url, exc)
            return None

    async def _get_json(
        self, url: str, what: str, **kwargs: Any
    ) -> Any | None:
        """GET a primary resource and decode it.

        404 is logged at info level, throttling marks the enricher
        rate-limited, anything else non-2xx is a warning. All return None.
        """
        resp = await self._get(url, **kwargs)
        if resp is None:
            return None
        if resp.status_code == 404:
            self.logger.info("[%s] Not found: %s", self.label, what)
            return None
        if self._is_rate_limited(resp):
            self._on_rate_limited(resp)
            return None
        if not resp.is_success:
            self.logger.warning(
                "[%s] API error for %s: %s", self.label, what, resp.status_code
            )
            return None
        return self._decode(resp, what)

    async def _get_optional_json(self, url: str, **kwargs: Any) -> Any | None:
        """GET a secondary resource; any failure just yields None."""
        resp = await self._get(url, **kwargs)
        if resp is None or not resp.is_success:
            return None
        return self._decode(resp, url)

    def _decode(self, resp: httpx.Response, what: str) -> Any | None:
        try:
            return resp.json()
        except ValueError:
            self.logger.warning("[%s] Invalid JSON for %s", self.label, what)
            return None

    def _is_rate_limited(self, resp: httpx.Response) -> bool:
        return resp.status_code in self.rate_limit_statuses

    def _on_rate_limited(self, resp: httpx.Response) -> None:
        self.rate_limited = True
        self.logger.warning(
            "[%s] Rate limited (HTTP %s)", self.label, resp.status_code
        )
