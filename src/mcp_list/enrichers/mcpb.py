"""MCPB enricher: release metadata from GitHub or GitLab.

MCPB identifiers are usually release asset URLs. GitHub releases report
per-asset download counts and sizes; GitLab release links carry neither,
so both totals are zero there.
"""

from __future__ import annotations

import re
from typing import Any, NamedTuple
from urllib.parse import quote

import httpx

from mcp_list import config
from mcp_list.enrichers.base import Enricher
from mcp_list.enrichers.github import github_headers, is_github_rate_limit
from mcp_list.output.models import McpbEnrichment, ServerRecord


class ReleaseRef(NamedTuple):
    source: str  # "github" | "gitlab"
    owner: str
    repo: str
    tag: str | None


# Tried in order; the first match wins.
_IDENTIFIER_PATTERNS = (
    (
        "github",
        re.compile(r"github\.com/([^/]+)/([^/]+)/releases/(?:tag/|download/)?([^/?#]+)"),
    ),
    ("github", re.compile(r"github\.com/([^/]+)/([^/?#]+)")),
    ("gitlab", re.compile(r"gitlab\.com/([^/]+)/([^/]+)/-/releases/([^/?#]+)")),
    ("gitlab", re.compile(r"gitlab\.com/([^/]+)/([^/?#]+)")),
)

_GITLAB_HOST = httpx.URL(config.GITLAB_API_URL).host

# Ordered: first match wins within each table.
_OS_PATTERNS = (
    (re.compile(r"darwin|macos|osx"), "darwin"),
    (re.compile(r"linux"), "linux"),
    (re.compile(r"windows|win32|win64|\.exe"), "windows"),
)
_ARCH_PATTERNS = (
    (re.compile(r"x86_64|x64|amd64"), "x64"),
    (re.compile(r"arm64|aarch64"), "arm64"),
    (re.compile(r"i386|i686|x86(?!_)"), "x86"),
    (re.compile(r"armv7|arm32"), "arm"),
)


def parse_identifier(identifier: str) -> ReleaseRef | None:
    for source, pattern in _IDENTIFIER_PATTERNS:
        m = pattern.search(identifier)
        if m is None:
            continue
        groups = m.groups()
        tag = groups[2] if len(groups) > 2 else None
        if tag == "latest":
            tag = None
        repo = groups[1]
        if repo.endswith(".git"):
            repo = repo[: -len(".git")]
        return ReleaseRef(source, groups[0], repo, tag)
    return None


def detect_platform(filename: str) -> str | None:
    """``os-arch``, ``os``, or None from an asset filename."""
    lower = filename.lower()
    os_name = next((v for p, v in _OS_PATTERNS if p.search(lower)), None)
    if os_name is None:
        return None
    arch = next((v for p, v in _ARCH_PATTERNS if p.search(lower)), None)
    return f"{os_name}-{arch}" if arch else os_name


def _platforms(names: list[str]) -> list[str]:
    found: list[str] = []
    for name in names:
        platform = detect_platform(name)
        if platform and platform not in found:
            found.append(platform)
    return found


class McpbEnricher(Enricher):
    """Release metadata for mcpb packages.

    GitHub and GitLab throttle independently, so each provider has its own
    rate-limit state. The enricher as a whole is only disabled once both are.
    """

    key = "mcpb"
    label = "MCPB"

    def __init__(self, client: httpx.AsyncClient, github_token: str | None = None) -> None:
        super().__init__(client)
        self._github_token = github_token
        self.provider_limited = {"github": False, "gitlab": False}

    @staticmethod
    def _provider(resp: httpx.Response) -> str:
        return "gitlab" if resp.url.host == _GITLAB_HOST else "github"

    def _is_rate_limited(self, resp: httpx.Response) -> bool:
        if self._provider(resp) == "gitlab":
            return resp.status_code == 429
        return is_github_rate_limit(resp)

    def _on_rate_limited(self, resp: httpx.Response) -> None:
        provider = self._provider(resp)
        self.provider_limited[provider] = True
        self.rate_limited = all(self.provider_limited.values())
        self.logger.warning(
            "[MCPB] Rate limited by %s (HTTP %s)", provider, resp.status_code
        )

    async def _github_release(self, ref: ReleaseRef) -> McpbEnrichment | None:
        base = f"{config.GITHUB_API_BASE}/repos/{ref.owner}/{ref.repo}/releases"
        url = f"{base}/tags/{quote(ref.tag, safe='')}" if ref.tag else f"{base}/latest"
        release = await self._get_json(
            url,
            f"github/{ref.owner}/{ref.repo}",
            headers=github_headers(self._github_token),
        )
        if not isinstance(release, dict):
            return None

        assets: list[dict[str, Any]] = release.get("assets") or []
        return McpbEnrichment(
            release_url=release.get("html_url"),
            download_count=sum(a.get("download_count") or 0 for a in assets),
            asset_size=sum(a.get("size") or 0 for a in assets),
            last_release=release.get("published_at"),
            platforms=_platforms([a.get("name") or "" for a in assets]),
            tag_name=release.get("tag_name"),
            prerelease=bool(release.get("prerelease")),
        )

    async def _gitlab_release(self, ref: ReleaseRef) -> McpbEnrichment | None:
        project = quote(f"{ref.owner}/{ref.repo}", safe="")
        base = f"{config.GITLAB_API_URL}/projects/{project}/releases"
        url = f"{base}/{quote(ref.tag, safe='')}" if ref.tag else base
        data = await self._get_json(url, f"gitlab/{ref.owner}/{ref.repo}")
        # Without a tag we get the release list, newest first.
        if isinstance(data, list):
            data = data[0] if data else None
        if not isinstance(data, dict):
            return None

        links = (data.get("assets") or {}).get("links") or []
        return McpbEnrichment(
            release_url=(data.get("_links") or {}).get("self"),
            download_count=0,
            asset_size=0,
            last_release=data.get("released_at"),
            platforms=_platforms([link.get("name") or "" for link in links]),
            tag_name=data.get("tag_name"),
            prerelease=bool(data.get("upcoming_release")),
        )

    async def enrich(self, record: ServerRecord) -> McpbEnrichment | None:
        identifier = self.find_package(record, "mcpb")
        if not identifier:
            return None

        ref = parse_identifier(identifier)
        if ref is None:
            self.logger.warning("[MCPB] Could not parse identifier: %s", identifier)
            return None

        if self.provider_limited[ref.source]:
            self.logger.debug(
                "[MCPB] Skipping %s, %s is rate limited", identifier, ref.source
            )
            return None

        self.logger.info("[MCPB] Fetching: %s/%s/%s", ref.source, ref.owner, ref.repo)
        if ref.source == "github":
            return await self._github_release(ref)
        return await self._gitlab_release(ref)
