"""NuGet enricher.

The search API gives downloads, authors and tags but no publish date; the
registration index supplies that when its newest page is inlined.
"""

from __future__ import annotations

import asyncio
from typing import Any
from urllib.parse import quote

from mcp_list import config
from mcp_list.enrichers.base import Enricher
from mcp_list.output.models import NuGetEnrichment, ServerRecord


def latest_published(registration: Any) -> str | None:
    """Publish date of the newest version listed in a registration index."""
    if not isinstance(registration, dict):
        return None
    pages = registration.get("items") or []
    if not pages:
        return None
    # Large packages leave pages out of the index; we don't follow them.
    leaves = pages[-1].get("items") or []
    if not leaves:
        return None
    entry = leaves[-1].get("catalogEntry") or {}
    return entry.get("published")


class NuGetEnricher(Enricher):
    key = "nuget"
    label = "NuGet"

    async def _fetch_search(self, package_name: str) -> dict[str, Any] | None:
        data = await self._get_json(
            f"{config.NUGET_API_URL}/query",
            package_name,
            params={"q": f"packageid:{package_name}", "take": 1},
        )
        if not isinstance(data, dict):
            return None
        wanted = package_name.lower()
        for pkg in data.get("data") or []:
            if str(pkg.get("id", "")).lower() == wanted:
                return pkg
        self.logger.info("[NuGet] Not found: %s", package_name)
        return None

    async def enrich(self, record: ServerRecord) -> NuGetEnrichment | None:
        package_name = self.find_package(record, "nuget")
        if not package_name:
            return None

        self.logger.info("[NuGet] Fetching: %s", package_name)
        registration_url = (
            f"{config.NUGET_REGISTRATION_URL}/"
            f"{quote(package_name.lower(), safe='')}/index.json"
        )
        search, registration = await asyncio.gather(
            self._fetch_search(package_name),
            self._get_optional_json(registration_url),
        )
        if search is None:
            return None

        return NuGetEnrichment(
            total_downloads=search.get("totalDownloads") or 0,
            latest_version=search.get("version") or "",
            last_published=latest_published(registration),
            authors=_as_list(search.get("authors")),
            tags=_as_list(search.get("tags")),
            project_url=search.get("projectUrl") or None,
        )


def _as_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    if isinstance(value, list):
        return [str(v) for v in value]
    return []
