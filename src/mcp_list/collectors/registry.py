"""MCP Registry API client.

Paginates the official MCP registry and keeps only entries flagged as the
latest version of their server. Unlike the enrichers, any non-success
response here aborts the fetch: the registry is the source of truth.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from urllib.parse import quote

import httpx

from mcp_list import config
from mcp_list.fetch import fetch_with_retry
from mcp_list.output.models import Package, Remote, Repository, ServerRecord

logger = logging.getLogger(__name__)

# Raw {"server": {...}, "_meta": {...}} item from the registry.
RegistryEntry = dict[str, Any]


class RegistryError(Exception):
    """The registry answered with a non-success status."""

    def __init__(self, status_code: int, reason: str, url: str) -> None:
        super().__init__(f"Registry API error: {status_code} {reason} ({url})")
        self.status_code = status_code


def official_meta(entry: RegistryEntry) -> dict[str, Any]:
    meta_block = entry.get("_meta") or {}
    official = meta_block.get(config.REGISTRY_OFFICIAL_META)
    if isinstance(official, dict):
        return official
    return meta_block


def is_latest(entry: RegistryEntry) -> bool:
    """Return True if the entry's _meta marks it as isLatest."""
    return bool(official_meta(entry).get("isLatest", False))


def entry_name(entry: RegistryEntry) -> str:
    return (entry.get("server") or {}).get("name", "")


def convert_registry_entry(entry: RegistryEntry) -> ServerRecord:
    """Build a ServerRecord from registry fields, with empty enrichment."""
    server = entry["server"]
    official = official_meta(entry)
    repo = server.get("repository")

    return ServerRecord(
        name=server.get("name", ""),
        description=server.get("description") or "",
        version=server.get("version") or "",
        repository=Repository.model_validate(repo) if repo and repo.get("url") else None,
        packages=[Package.model_validate(p) for p in server.get("packages") or []],
        remotes=[Remote.model_validate(r) for r in server.get("remotes") or []],
        status=official.get("status") or "active",
        published_at=official.get("publishedAt") or "",
        updated_at=official.get("updatedAt") or "",
        is_latest=bool(official.get("isLatest", False)),
    )


class RegistryClient:
    """Thin async client over the registry's /servers endpoints."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str = config.REGISTRY_BASE_URL,
        limit: int = config.REGISTRY_LIMIT,
        page_delay: float = config.REGISTRY_PAGE_DELAY,
    ) -> None:
        self._client = client
        self._base = f"{base_url.rstrip('/')}/{config.REGISTRY_API_VERSION}"
        self.limit = limit
        self.page_delay = page_delay

    async def _get(self, url: str, params: dict[str, Any] | None = None) -> httpx.Response:
        return await fetch_with_retry(
            self._client,
            url,
            params=params,
            headers={"Accept": "application/json", "User-Agent": config.USER_AGENT},
        )

    @staticmethod
    def _check(resp: httpx.Response) -> None:
        if not resp.is_success:
            raise RegistryError(resp.status_code, resp.reason_phrase, str(resp.url))

    async def fetch_servers(
        self,
        cursor: str | None = None,
        updated_since: str | None = None,
    ) -> dict[str, Any]:
        """Fetch one raw page: ``{"servers": [...], "metadata": {...}}``."""
        params: dict[str, Any] = {"limit": self.limit}
        if cursor:
            params["cursor"] = cursor
        if updated_since:
            params["updated_since"] = updated_since

        resp = await self._get(f"{self._base}/servers", params)
        self._check(resp)
        data = resp.json()
        logger.debug(
            "Received %d servers (cursor: %s)",
            len(data.get("servers") or []),
            (data.get("metadata") or {}).get("nextCursor") or "none",
        )
        return data

    async def fetch_all_servers(
        self, updated_since: str | None = None
    ) -> list[RegistryEntry]:
        """Follow cursors until exhausted, keeping only latest versions."""
        entries: list[RegistryEntry] = []
        cursor: str | None = None
        page = 0

        while True:
            page += 1
            data = await self.fetch_servers(cursor=cursor, updated_since=updated_since)

            servers_raw: list[RegistryEntry] = data.get("servers") or []
            batch = [e for e in servers_raw if is_latest(e)]
            entries.extend(batch)

            logger.info(
                "Collected page %d... %d raw, %d latest, %d total",
                page, len(servers_raw), len(batch), len(entries),
            )

            cursor = (data.get("metadata") or {}).get("nextCursor")
            if not cursor:
                break
            await asyncio.sleep(self.page_delay)

        logger.info("Fetched %d latest servers across %d pages", len(entries), page)
        return entries

    async def fetch_updated_servers(self, since: str) -> list[RegistryEntry]:
        logger.info("Fetching servers updated since %s", since)
        return await self.fetch_all_servers(updated_since=since)

    async def fetch_server_version(
        self, name: str, version: str = "latest"
    ) -> RegistryEntry | None:
        """One specific version of a server, or None if the registry has none."""
        url = (
            f"{self._base}/servers/{quote(name, safe='')}"
            f"/versions/{quote(version, safe='')}"
        )
        resp = await self._get(url)
        if resp.status_code == 404:
            logger.info("Server not found: %s@%s", name, version)
            return None
        self._check(resp)
        return resp.json()

    async def fetch_server_versions(self, name: str) -> list[str]:
        """Every published version string of a server."""
        resp = await self._get(f"{self._base}/servers/{quote(name, safe='')}/versions")
        self._check(resp)
        data = resp.json()
        versions = data.get("versions") or []
        # Newer registry builds return full entries instead of bare strings.
        return [
            v if isinstance(v, str) else (v.get("server") or {}).get("version", "")
            for v in versions
        ]
