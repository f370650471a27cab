"""Tests for environment-driven configuration."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pydantic
import pytest

from mcp_list.config import (
    SYNC_ENRICH_CONCURRENCY,
    SYNC_ENRICH_DELAY,
    EnrichmentOptions,
    load_config,
)

ENV_VARS = (
    "FULL_SYNC",
    "MCP_LIST_DATA_DIR",
    "SYNC_CONCURRENCY",
    "SYNC_DELAY_MS",
    "SYNC_MAX_AGE_HOURS",
    "GITHUB_TOKEN",
    "DOCKER_USERNAME",
    "DOCKER_PASSWORD",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    config = load_config()
    assert config.force_full_sync is False
    assert config.data_dir == Path("data")
    assert config.servers_path == Path("data/servers.json")
    assert config.enrichment.concurrency == SYNC_ENRICH_CONCURRENCY
    assert config.enrichment.delay == SYNC_ENRICH_DELAY
    assert config.enrichment.max_age == timedelta(hours=24)
    assert config.github_token is None


def test_sync_is_gentler_than_coordinator_defaults():
    sync = load_config().enrichment
    base = EnrichmentOptions()
    assert sync.concurrency < base.concurrency
    assert sync.delay > base.delay


def test_environment(monkeypatch):
    monkeypatch.setenv("FULL_SYNC", "true")
    monkeypatch.setenv("MCP_LIST_DATA_DIR", "/srv/mcp")
    monkeypatch.setenv("SYNC_CONCURRENCY", "5")
    monkeypatch.setenv("SYNC_DELAY_MS", "750")
    monkeypatch.setenv("SYNC_MAX_AGE_HOURS", "6")
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_x")

    config = load_config()

    assert config.force_full_sync is True
    assert config.sync_state_path == Path("/srv/mcp/sync-state.json")
    assert config.enrichment.concurrency == 5
    assert config.enrichment.delay == 0.75
    assert config.enrichment.max_age == timedelta(hours=6)
    assert config.github_token == "ghp_x"


def test_overrides_beat_environment(monkeypatch):
    monkeypatch.setenv("SYNC_CONCURRENCY", "5")
    config = load_config(concurrency=1, data_dir="out", force_full_sync=None)
    assert config.enrichment.concurrency == 1
    assert config.data_dir == Path("out")
    assert config.force_full_sync is False


def test_config_is_immutable():
    config = load_config()
    with pytest.raises(pydantic.ValidationError):
        config.force_full_sync = True
