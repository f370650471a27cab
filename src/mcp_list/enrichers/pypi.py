"""PyPI enricher: JSON API metadata plus pypistats download counts."""

from __future__ import annotations

import asyncio
import re

from mcp_list import config
from mcp_list.enrichers.base import Enricher
from mcp_list.output.models import PyPiEnrichment, ServerRecord

_KEYWORD_SPLIT = re.compile(r"[,\s]+")


def parse_keywords(raw: str | None) -> list[str]:
    """PyPI keywords are one free-form string, comma or space separated."""
    if not raw:
        return []
    return [k for k in _KEYWORD_SPLIT.split(raw) if k]


class PyPiEnricher(Enricher):
    key = "pypi"
    label = "PyPI"

    async def _fetch_downloads(self, package_name: str) -> int:
        # pypistats has no data for many packages; that only costs the count.
        data = await self._get_optional_json(
            f"{config.PYPISTATS_API_URL}/packages/{package_name}/recent"
        )
        if not isinstance(data, dict):
            return 0
        return (data.get("data") or {}).get("last_month") or 0

    async def enrich(self, record: ServerRecord) -> PyPiEnrichment | None:
        package_name = self.find_package(record, "pypi")
        if not package_name:
            return None

        self.logger.info("[PyPI] Fetching: %s", package_name)
        package_data, downloads = await asyncio.gather(
            self._get_json(f"{config.PYPI_API_URL}/{package_name}/json", package_name),
            self._fetch_downloads(package_name.lower()),
        )
        if not isinstance(package_data, dict):
            return None

        info = package_data.get("info") or {}
        latest = info.get("version")
        if not latest:
            self.logger.warning("[PyPI] Package has no version: %s", package_name)
            return None

        files = (package_data.get("releases") or {}).get(latest) or []
        last_published = files[0].get("upload_time_iso_8601") if files else None

        return PyPiEnrichment(
            downloads=downloads,
            latest_version=latest,
            requires_python=info.get("requires_python") or None,
            last_published=last_published,
            author=info.get("author") or None,
            author_email=info.get("author_email") or None,
            homepage=info.get("home_page") or None,
            keywords=parse_keywords(info.get("keywords")),
        )
