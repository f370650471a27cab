"""npm registry enricher."""

from __future__ import annotations

import asyncio
from urllib.parse import quote

from mcp_list import config
from mcp_list.enrichers.base import Enricher
from mcp_list.output.models import NpmEnrichment, ServerRecord


class NpmEnricher(Enricher):
    """Package document plus last-week and last-month download points."""

    key = "npm"
    label = "npm"

    async def _fetch_downloads(self, encoded: str, period: str) -> int:
        data = await self._get_optional_json(
            f"{config.NPM_API_URL}/downloads/point/{period}/{encoded}"
        )
        if not isinstance(data, dict):
            return 0
        return data.get("downloads") or 0

    async def enrich(self, record: ServerRecord) -> NpmEnrichment | None:
        package_name = self.find_package(record, "npm")
        if not package_name:
            return None

        self.logger.info("[npm] Fetching: %s", package_name)
        # @scope/name -> @scope%2Fname
        encoded = quote(package_name, safe="@")

        package_data, weekly, monthly = await asyncio.gather(
            self._get_json(f"{config.NPM_REGISTRY_URL}/{encoded}", package_name),
            self._fetch_downloads(encoded, "last-week"),
            self._fetch_downloads(encoded, "last-month"),
        )
        if not isinstance(package_data, dict):
            return None

        latest = (package_data.get("dist-tags") or {}).get("latest")
        if not latest:
            self.logger.warning("[npm] Package has no latest tag: %s", package_name)
            return None

        version_data = (package_data.get("versions") or {}).get(latest) or {}
        times = package_data.get("time") or {}
        return NpmEnrichment(
            weekly_downloads=weekly,
            monthly_downloads=monthly,
            latest_version=latest,
            dependencies=len(version_data.get("dependencies") or {}),
            last_published=times.get(latest) or times.get("modified"),
            maintainers=[
                m["name"]
                for m in package_data.get("maintainers") or []
                if isinstance(m, dict) and m.get("name")
            ],
            homepage=package_data.get("homepage"),
            keywords=_as_str_list(package_data.get("keywords")),
        )


def _as_str_list(value: object) -> list[str]:
    # Some old packages publish keywords as a single string.
    if isinstance(value, str):
        return [value] if value else []
    if isinstance(value, list):
        return [v for v in value if isinstance(v, str)]
    return []
