"""Shared fixtures: sample registry data and a routing MockTransport."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

from mcp_list import fetch

FIXTURES = Path(__file__).parent / "fixtures"

Handler = Callable[[httpx.Request], httpx.Response]


class Router:
    """Dispatch requests by (host, path); unknown URLs get a 404.

    Every request is recorded in ``calls`` so tests can count network use.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Handler] = {}
        self.calls: list[httpx.Request] = []

    def add(
        self,
        url: str,
        handler: Handler | None = None,
        *,
        json: Any = None,
        status: int = 200,
        headers: dict[str, str] | None = None,
    ) -> None:
        u = httpx.URL(url)
        if handler is None:
            def handler(request: httpx.Request) -> httpx.Response:
                return httpx.Response(status, json=json, headers=headers)
        self.routes[(u.host, u.path)] = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        handler = self.routes.get((request.url.host, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"message": "Not Found"})
        return handler(request)

    def calls_to(self, host: str) -> list[httpx.Request]:
        return [r for r in self.calls if r.url.host == host]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport())


@pytest.fixture
def router() -> Router:
    return Router()


@pytest.fixture
def registry_entries() -> list[dict]:
    with open(FIXTURES / "sample_registry.json") as f:
        return json.load(f)


@pytest.fixture
def no_backoff(monkeypatch) -> list[float]:
    """Replace the retry backoff sleep and record requested durations."""
    slept: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        slept.append(seconds)

    monkeypatch.setattr(fetch, "sleep", fake_sleep)
    return slept


def registry_entry(
    name: str,
    *,
    version: str = "1.0.0",
    status: str = "active",
    is_latest: bool = True,
    packages: list[dict] | None = None,
    remotes: list[dict] | None = None,
    repository: dict | None = None,
    description: str = "",
    updated_at: str = "2026-10-01T00:00:00Z",
) -> dict:
    server: dict[str, Any] = {
        "name": name,
        "description": description or f"{name} server",
        "version": version,
        "packages": packages or [],
        "remotes": remotes or [],
    }
    if repository:
        server["repository"] = repository
    return {
        "server": server,
        "_meta": {
            "io.modelcontextprotocol.registry/official": {
                "status": status,
                "publishedAt": "2026-09-01T00:00:00Z",
                "updatedAt": updated_at,
                "isLatest": is_latest,
            }
        },
    }
