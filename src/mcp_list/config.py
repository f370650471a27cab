"""Endpoints, defaults, and the per-run configuration objects."""

from __future__ import annotations

import os
from datetime import timedelta
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# --- Registry API ---
REGISTRY_BASE_URL = "https://registry.modelcontextprotocol.io"
REGISTRY_API_VERSION = "v0.1"
REGISTRY_LIMIT = 100  # 'limit' param for pagination
REGISTRY_PAGE_DELAY = 0.1  # seconds between page requests
REGISTRY_OFFICIAL_META = "io.modelcontextprotocol.registry/official"

# --- Source APIs ---
GITHUB_API_BASE = "https://api.github.com"
GITHUB_RATE_LIMIT_BUFFER = 10  # stop this many before limit
NPM_REGISTRY_URL = "https://registry.npmjs.org"
NPM_API_URL = "https://api.npmjs.org"
PYPI_API_URL = "https://pypi.org/pypi"
PYPISTATS_API_URL = "https://pypistats.org/api"
NUGET_API_URL = "https://api.nuget.org/v3"
NUGET_REGISTRATION_URL = "https://api.nuget.org/v3/registration5-semver1"
DOCKER_HUB_API_URL = "https://hub.docker.com/v2"
DOCKER_TAGS_PAGE_SIZE = 10
GITLAB_API_URL = "https://gitlab.com/api/v4"

USER_AGENT = "mcp-list/1.0.0 (+https://github.com/sjnims/mcp-list)"

# --- Resilient fetch ---
FETCH_MAX_RETRIES = 3
FETCH_BASE_TIMEOUT = 10.0  # seconds, multiplied by the attempt number
FETCH_BACKOFF = 1.0  # seconds, multiplied by the attempt number

# --- Enrichment defaults ---
ENRICH_DELAY = 0.1
ENRICH_CONCURRENCY = 3
ENRICH_MAX_AGE = timedelta(hours=24)

# The sync run is gentler on the source APIs than the coordinator defaults.
SYNC_ENRICH_DELAY = 0.2
SYNC_ENRICH_CONCURRENCY = 2
SYNC_ENRICH_MAX_AGE = timedelta(hours=24)

# --- Sync ---
FULL_SYNC_INTERVAL = timedelta(days=7)
SYNC_STATE_VERSION = 1

# --- Output ---
DATA_DIR = "data"
SERVERS_FILE = "servers.json"
SYNC_STATE_FILE = "sync-state.json"


class EnrichmentOptions(BaseModel):
    """Knobs for one coordinator run."""

    model_config = ConfigDict(frozen=True)

    delay: float = Field(default=ENRICH_DELAY, ge=0)
    concurrency: int = Field(default=ENRICH_CONCURRENCY, ge=1)
    skip_if_fresh: bool = True
    max_age: timedelta = ENRICH_MAX_AGE


class SyncConfig(BaseModel):
    """Everything a sync run needs, built once and passed down."""

    model_config = ConfigDict(frozen=True)

    data_dir: Path = Path(DATA_DIR)
    force_full_sync: bool = False
    enrichment: EnrichmentOptions = EnrichmentOptions(
        delay=SYNC_ENRICH_DELAY,
        concurrency=SYNC_ENRICH_CONCURRENCY,
        max_age=SYNC_ENRICH_MAX_AGE,
    )
    registry_base_url: str = REGISTRY_BASE_URL
    registry_page_delay: float = Field(default=REGISTRY_PAGE_DELAY, ge=0)
    github_token: str | None = None
    docker_username: str | None = None
    docker_password: str | None = None

    @property
    def servers_path(self) -> Path:
        return self.data_dir / SERVERS_FILE

    @property
    def sync_state_path(self) -> Path:
        return self.data_dir / SYNC_STATE_FILE


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes")


def load_config(**overrides: Any) -> SyncConfig:
    """Build a SyncConfig from the environment, then apply overrides.

    Enrichment knobs may be overridden individually via ``concurrency``,
    ``delay`` and ``max_age`` keyword arguments.
    """
    enrichment: dict[str, Any] = {
        "delay": SYNC_ENRICH_DELAY,
        "concurrency": SYNC_ENRICH_CONCURRENCY,
        "max_age": SYNC_ENRICH_MAX_AGE,
    }
    if os.environ.get("SYNC_CONCURRENCY"):
        enrichment["concurrency"] = int(os.environ["SYNC_CONCURRENCY"])
    if os.environ.get("SYNC_DELAY_MS"):
        enrichment["delay"] = int(os.environ["SYNC_DELAY_MS"]) / 1000
    if os.environ.get("SYNC_MAX_AGE_HOURS"):
        enrichment["max_age"] = timedelta(
            hours=float(os.environ["SYNC_MAX_AGE_HOURS"])
        )
    for key in ("concurrency", "delay", "max_age"):
        value = overrides.pop(key, None)
        if value is not None:
            enrichment[key] = value

    values: dict[str, Any] = {
        "data_dir": Path(os.environ.get("MCP_LIST_DATA_DIR") or DATA_DIR),
        "force_full_sync": _env_flag("FULL_SYNC"),
        "enrichment": EnrichmentOptions(**enrichment),
        "github_token": os.environ.get("GITHUB_TOKEN") or None,
        "docker_username": os.environ.get("DOCKER_USERNAME") or None,
        "docker_password": os.environ.get("DOCKER_PASSWORD") or None,
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    return SyncConfig(**values)
