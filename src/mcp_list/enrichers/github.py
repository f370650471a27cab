"""GitHub API enricher.

Fetches repository metadata for servers whose repository URL points at
github.com. Tracks X-RateLimit-Remaining and stops calling GitHub for the
rest of the run once the budget runs low.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any

import httpx

from mcp_list import config
from mcp_list.enrichers.base import Enricher
from mcp_list.output.models import GitHubEnrichment, GitHubOwner, ServerRecord

# HTTPS (github.com/owner/repo[.git][/...]) first, then SCP-style
# (git@github.com:owner/repo[.git]).
_GITHUB_PATTERNS = (
    re.compile(r"github\.com/(?P<owner>[^/]+)/(?P<repo>[^/]+?)(?:\.git)?(?:/|$)"),
    re.compile(r"github\.com:(?P<owner>[^/]+)/(?P<repo>[^/]+?)(?:\.git)?$"),
)


def parse_repo_url(url: str) -> tuple[str, str] | None:
    """Extract (owner, repo) from a GitHub URL, or None if not a match."""
    url = url.strip()
    for pattern in _GITHUB_PATTERNS:
        m = pattern.search(url)
        if m:
            return m.group("owner"), m.group("repo")
    return None


def github_headers(token: str | None) -> dict[str, str]:
    headers = {
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": "2022-11-28",
        "User-Agent": config.USER_AGENT,
    }
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def is_github_rate_limit(resp: httpx.Response) -> bool:
    """429 always; 403 only when the quota is spent or a retry is requested.

    GitHub also answers 403 for blocked repos and SAML enforcement, which
    concern a single repository.
    """
    if resp.status_code == 429:
        return True
    if resp.status_code != 403:
        return False
    return (
        resp.headers.get("X-RateLimit-Remaining") == "0"
        or "Retry-After" in resp.headers
    )


class GitHubEnricher(Enricher):
    """Fetches GitHub metadata for servers with GitHub repo URLs."""

    key = "github"
    label = "GitHub"

    def __init__(self, client: httpx.AsyncClient, token: str | None = None) -> None:
        super().__init__(client)
        self._token = token
        self.rate_remaining: int | None = None

    def _headers(self) -> dict[str, str]:
        return github_headers(self._token)

    # ------------------------------------------------------------------
    # Rate-limit tracking
    # ------------------------------------------------------------------

    def _update_rate_limit(self, resp: httpx.Response) -> None:
        """Read X-RateLimit-Remaining from response headers and track it."""
        raw = resp.headers.get("X-RateLimit-Remaining")
        if raw is None:
            return
        try:
            remaining = int(raw)
        except ValueError:
            return
        self.rate_remaining = remaining
        if remaining < config.GITHUB_RATE_LIMIT_BUFFER and not self.rate_limited:
            self.rate_limited = True
            self.logger.warning(
                "[GitHub] Rate limit buffer reached (%d remaining)", remaining
            )

    def _is_rate_limited(self, resp: httpx.Response) -> bool:
        return is_github_rate_limit(resp)

    def _on_rate_limited(self, resp: httpx.Response) -> None:
        reset = resp.headers.get("X-RateLimit-Reset")
        reset_at = "unknown"
        if reset and reset.isdigit():
            reset_at = datetime.fromtimestamp(int(reset), tz=timezone.utc).isoformat()
        self.rate_limited = True
        self.logger.warning("[GitHub] Rate limited. Reset at: %s", reset_at)

    async def _get(self, url: str, **kwargs: Any) -> httpx.Response | None:
        resp = await super()._get(url, **kwargs)
        if resp is not None:
            self._update_rate_limit(resp)
        return resp

    # ------------------------------------------------------------------
    # Public entry point
    # ------------------------------------------------------------------

    async def enrich(self, record: ServerRecord) -> GitHubEnrichment | None:
        repo_url = record.repository.url if record.repository else ""
        if not repo_url or "github.com" not in repo_url:
            return None

        parsed = parse_repo_url(repo_url)
        if parsed is None:
            self.logger.warning("[GitHub] Could not parse URL: %s", repo_url)
            return None
        owner, repo = parsed

        self.logger.info("[GitHub] Fetching: %s/%s", owner, repo)
        meta = await self._get_json(
            f"{config.GITHUB_API_BASE}/repos/{owner}/{repo}", f"{owner}/{repo}"
        )
        if not isinstance(meta, dict):
            return None

        license_info = meta.get("license")
        owner_info = meta.get("owner") or {}
        return GitHubEnrichment(
            stars=meta.get("stargazers_count") or 0,
            forks=meta.get("forks_count") or 0,
            open_issues=meta.get("open_issues_count") or 0,
            watchers=meta.get("subscribers_count") or 0,
            last_commit=meta.get("pushed_at"),
            license=(
                license_info.get("spdx_id") if isinstance(license_info, dict) else None
            ),
            topics=meta.get("topics") or [],
            language=meta.get("language") or None,
            owner=GitHubOwner(
                login=owner_info.get("login") or owner,
                avatar=owner_info.get("avatar_url") or "",
            ),
            archived=bool(meta.get("archived")),
            default_branch=meta.get("default_branch"),
        )
