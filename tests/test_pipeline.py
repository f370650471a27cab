"""Tests for the sync orchestrator: mode selection, merging, end-to-end runs."""

from __future__ import annotations

import json
from datetime import timedelta

import httpx
import pytest

from conftest import registry_entry
from mcp_list.collectors.registry import RegistryError, convert_registry_entry
from mcp_list.config import EnrichmentOptions, SyncConfig
from mcp_list.enrichers.coordinator import format_timestamp, utc_now
from mcp_list.output.models import Enrichment, GitHubEnrichment, SyncState
from mcp_list.output.writer import (
    SnapshotError,
    load_servers,
    load_sync_state,
    save_servers,
    save_sync_state,
)
from mcp_list.pipeline import merge_entries, run, select_for_enrichment, should_do_full_sync

SERVERS_URL = "https://registry.modelcontextprotocol.io/v0.1/servers"

ACME_TOOL = registry_entry(
    "acme/tool",
    packages=[{"registryType": "npm", "identifier": "acme-tool"}],
)


def _config(tmp_path, **kwargs) -> SyncConfig:
    return SyncConfig(
        data_dir=tmp_path,
        registry_page_delay=0,
        enrichment=EnrichmentOptions(delay=0, concurrency=2),
        **kwargs,
    )


def _serve_registry(router, entries, seen_params=None):
    def handler(request):
        if seen_params is not None:
            seen_params.append(dict(request.url.params))
        return httpx.Response(
            200, json={"servers": entries, "metadata": {"count": len(entries)}}
        )

    router.add(SERVERS_URL, handler)


def _serve_npm(router, monthly=5000):
    router.add(
        "https://registry.npmjs.org/acme-tool",
        json={
            "dist-tags": {"latest": "1.0.0"},
            "time": {"1.0.0": "2026-09-01T00:00:00Z"},
            "versions": {"1.0.0": {}},
        },
    )
    router.add(
        "https://api.npmjs.org/downloads/point/last-week/acme-tool",
        json={"downloads": 1200},
    )
    router.add(
        "https://api.npmjs.org/downloads/point/last-month/acme-tool",
        json={"downloads": monthly},
    )


def _read_servers(tmp_path) -> list[dict]:
    with open(tmp_path / "servers.json") as f:
        return json.load(f)


def _state(last_sync_ago: timedelta, last_full_ago: timedelta) -> SyncState:
    now = utc_now()
    return SyncState(
        last_sync_at=format_timestamp(now - last_sync_ago),
        last_full_sync_at=format_timestamp(now - last_full_ago),
        total_servers=0,
    )


# --- Mode selection ---


def test_full_sync_without_state(tmp_path):
    assert should_do_full_sync(None, _config(tmp_path), utc_now())


def test_full_sync_when_forced(tmp_path):
    state = _state(timedelta(hours=1), timedelta(days=1))
    assert should_do_full_sync(state, _config(tmp_path, force_full_sync=True), utc_now())


def test_full_sync_after_seven_days(tmp_path):
    state = _state(timedelta(hours=1), timedelta(days=8))
    assert should_do_full_sync(state, _config(tmp_path), utc_now())


def test_incremental_within_interval(tmp_path):
    state = _state(timedelta(hours=1), timedelta(days=6))
    assert not should_do_full_sync(state, _config(tmp_path), utc_now())


# --- Merge ---


def test_merge_keeps_enrichment_and_replaces_registry_fields():
    old = convert_registry_entry(registry_entry("acme/tool", description="old"))
    old.enrichment = Enrichment(
        last_enriched_at="2026-10-01T00:00:00.000Z",
        github=GitHubEnrichment(stars=77),
    )
    update = registry_entry("acme/tool", version="1.1.0", description="new")

    merged = merge_entries({"acme/tool": old}, [update])

    assert merged["acme/tool"].description == "new"
    assert merged["acme/tool"].version == "1.1.0"
    assert merged["acme/tool"].enrichment == old.enrichment


def test_merge_removes_deleted():
    old = convert_registry_entry(registry_entry("acme/tool"))
    old.enrichment = Enrichment(github=GitHubEnrichment(stars=1000))
    other = convert_registry_entry(registry_entry("acme/other"))

    merged = merge_entries(
        {"acme/tool": old, "acme/other": other},
        [registry_entry("acme/tool", status="deleted")],
    )

    assert list(merged) == ["acme/other"]


def test_merge_last_entry_for_a_name_wins():
    merged = merge_entries(
        {},
        [
            registry_entry("acme/tool", version="1.0.0"),
            registry_entry("acme/tool", version="1.0.1"),
        ],
    )
    assert merged["acme/tool"].version == "1.0.1"


def test_select_for_enrichment():
    servers = {
        n: convert_registry_entry(registry_entry(n)) for n in ("a/one", "a/two", "a/three")
    }
    touched = [registry_entry("a/two")]

    assert len(select_for_enrichment(servers, touched, full=True)) == 3
    assert [s.name for s in select_for_enrichment(servers, touched, full=False)] == ["a/two"]


# --- End to end ---


@pytest.mark.asyncio
async def test_first_run_builds_snapshot(router, tmp_path):
    _serve_registry(router, [ACME_TOOL])
    _serve_npm(router)

    state = await run(_config(tmp_path), transport=router.transport())

    servers = _read_servers(tmp_path)
    assert len(servers) == 1
    tool = servers[0]
    assert tool["name"] == "acme/tool"
    assert tool["enrichment"]["npm"]["monthlyDownloads"] == 5000
    assert "github" not in tool["enrichment"]
    assert tool["_computed"] == {
        "organization": "acme",
        "serverName": "tool",
        "packageTypes": ["npm"],
        "hasRemote": False,
        "totalDownloads": 5000,
        "stars": 0,
    }
    assert state.total_servers == 1
    assert state.last_full_sync_at == state.last_sync_at
    assert router.calls_to("api.github.com") == []

    saved_state = json.loads((tmp_path / "sync-state.json").read_text())
    assert saved_state["totalServers"] == 1
    assert saved_state["version"] == 1


@pytest.mark.asyncio
async def test_incremental_deletion_removes_record(router, tmp_path):
    _serve_registry(router, [ACME_TOOL])
    _serve_npm(router)
    first = await run(_config(tmp_path), transport=router.transport())

    seen: list[dict] = []
    _serve_registry(router, [registry_entry("acme/tool", status="deleted")], seen)
    second = await run(_config(tmp_path), transport=router.transport())

    assert seen[0]["updated_since"] == first.last_sync_at
    assert _read_servers(tmp_path) == []
    assert second.total_servers == 0
    assert second.last_full_sync_at == first.last_full_sync_at


@pytest.mark.asyncio
async def test_incremental_update_keeps_fresh_enrichment(router, tmp_path):
    config = _config(tmp_path)
    existing = convert_registry_entry(ACME_TOOL)
    existing.enrichment = Enrichment(
        last_enriched_at=format_timestamp(utc_now() - timedelta(hours=2)),
        github=GitHubEnrichment(stars=321),
    )
    untouched = convert_registry_entry(registry_entry("acme/zeta"))
    save_servers(config.servers_path, [existing, untouched])
    save_sync_state(config.sync_state_path, _state(timedelta(hours=3), timedelta(days=1)))

    updated = registry_entry(
        "acme/tool",
        version="1.1.0",
        packages=[{"registryType": "npm", "identifier": "acme-tool"}],
    )
    _serve_registry(router, [updated])
    _serve_npm(router)

    await run(config, transport=router.transport())

    servers = {s["name"]: s for s in _read_servers(tmp_path)}
    assert list(servers) == ["acme/tool", "acme/zeta"]
    assert servers["acme/tool"]["version"] == "1.1.0"
    assert servers["acme/tool"]["enrichment"]["github"]["stars"] == 321
    assert servers["acme/tool"]["_computed"]["stars"] == 321
    assert servers["acme/zeta"]["enrichment"]["lastEnrichedAt"] == ""
    # Only the registry was contacted: the one touched record was still fresh.
    assert {r.url.host for r in router.calls} == {"registry.modelcontextprotocol.io"}


@pytest.mark.asyncio
async def test_registry_failure_leaves_snapshot_untouched(router, tmp_path):
    config = _config(tmp_path)
    save_servers(config.servers_path, [convert_registry_entry(ACME_TOOL)])
    before = (tmp_path / "servers.json").read_bytes()
    router.add(SERVERS_URL, status=500)

    with pytest.raises(RegistryError):
        await run(config, transport=router.transport())

    assert (tmp_path / "servers.json").read_bytes() == before
    assert not (tmp_path / "sync-state.json").exists()


@pytest.mark.asyncio
async def test_snapshot_sorted_by_name(router, tmp_path, registry_entries):
    _serve_registry(router, registry_entries)

    await run(_config(tmp_path), transport=router.transport())

    names = [s["name"] for s in _read_servers(tmp_path)]
    assert names == ["ai.acme/db-tool", "com.hosted/search", "io.github.example/weather"]


# --- Snapshot store ---


def test_missing_files_load_empty(tmp_path):
    assert load_servers(tmp_path / "servers.json") == {}
    assert load_sync_state(tmp_path / "sync-state.json") is None


def test_corrupt_snapshot_raises(tmp_path):
    (tmp_path / "servers.json").write_text("{not json")

    with pytest.raises(SnapshotError):
        load_servers(tmp_path / "servers.json")


def test_corrupt_sync_state_loads_as_none(tmp_path):
    (tmp_path / "sync-state.json").write_text("[]")
    assert load_sync_state(tmp_path / "sync-state.json") is None


def test_sync_state_round_trips(tmp_path):
    state = _state(timedelta(hours=1), timedelta(days=2))
    save_sync_state(tmp_path / "sync-state.json", state)

    assert load_sync_state(tmp_path / "sync-state.json") == state


def _write_invalid_snapshot(config, names):
    # An npm slot without latestVersion fails validation.
    records = [
        {
            "name": name,
            "enrichment": {"lastEnrichedAt": "", "npm": {"weeklyDownloads": 1}},
        }
        for name in names
    ]
    config.servers_path.write_text(json.dumps(records))


@pytest.mark.asyncio
async def test_invalid_snapshot_forces_full_sync(router, tmp_path):
    config = _config(tmp_path)
    _write_invalid_snapshot(config, [f"acme/old-{i}" for i in range(50)])
    save_sync_state(config.sync_state_path, _state(timedelta(hours=1), timedelta(days=1)))

    seen: list[dict] = []
    others = [registry_entry(f"acme/other-{i}") for i in range(3)]
    _serve_registry(router, [ACME_TOOL, *others], seen)
    _serve_npm(router)

    state = await run(config, transport=router.transport())

    assert "updated_since" not in seen[0]
    assert state.total_servers == 4
    assert state.last_full_sync_at == state.last_sync_at
    assert len(_read_servers(tmp_path)) == 4


@pytest.mark.asyncio
async def test_invalid_snapshot_kept_when_registry_fails(router, tmp_path):
    config = _config(tmp_path)
    _write_invalid_snapshot(config, ["acme/old"])
    before = config.servers_path.read_bytes()
    router.add(SERVERS_URL, status=503)

    with pytest.raises(RegistryError):
        await run(config, transport=router.transport())

    assert config.servers_path.read_bytes() == before
