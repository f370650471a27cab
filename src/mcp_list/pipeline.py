"""Sync orchestrator: load → collect → merge → enrich → compute → save."""

from __future__ import annotations

import logging
import time
from datetime import datetime

import httpx

from mcp_list import config as cfg
from mcp_list.collectors.registry import (
    RegistryClient,
    RegistryEntry,
    convert_registry_entry,
    entry_name,
)
from mcp_list.config import SyncConfig
from mcp_list.enrichers.coordinator import (
    EnrichmentCoordinator,
    compute_server_fields,
    default_enrichers,
    format_timestamp,
    parse_timestamp,
    utc_now,
)
from mcp_list.output.models import ServerRecord, SyncState
from mcp_list.output.writer import (
    SnapshotError,
    load_servers,
    load_sync_state,
    save_servers,
    save_sync_state,
)

logger = logging.getLogger(__name__)


def should_do_full_sync(
    state: SyncState | None, config: SyncConfig, now: datetime
) -> bool:
    if config.force_full_sync:
        logger.info("Full sync requested via configuration")
        return True
    if state is None:
        logger.info("No previous state, doing full sync")
        return True
    last_full = parse_timestamp(state.last_full_sync_at)
    if last_full is None or now - last_full > cfg.FULL_SYNC_INTERVAL:
        logger.info("Time since last full sync exceeded, doing full sync")
        return True
    return False


def merge_entries(
    existing: dict[str, ServerRecord], entries: list[RegistryEntry]
) -> dict[str, ServerRecord]:
    """Fold registry entries into the previous servers.

    Registry fields are replaced wholesale, enrichment carries over from the
    previous record, and deleted entries drop out. Later entries for the
    same name win.
    """
    merged = dict(existing)
    for entry in entries:
        server = convert_registry_entry(entry)
        previous = merged.get(server.name)
        if previous is not None:
            server = server.model_copy(update={"enrichment": previous.enrichment})

        if server.status == "deleted":
            if merged.pop(server.name, None) is not None:
                logger.info("Removed deleted server: %s", server.name)
        else:
            merged[server.name] = server
    return merged


def select_for_enrichment(
    servers: dict[str, ServerRecord],
    entries: list[RegistryEntry],
    full: bool,
) -> list[ServerRecord]:
    if full:
        return list(servers.values())
    touched = {entry_name(e) for e in entries}
    return [s for name, s in servers.items() if name in touched]


async def run(
    config: SyncConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> SyncState:
    t0 = time.monotonic()
    started = utc_now()
    logger.info("Starting sync at %s", format_timestamp(started))

    # Stage 1: Load
    state = load_sync_state(config.sync_state_path)
    try:
        existing = load_servers(config.servers_path)
    except SnapshotError as exc:
        # An incremental run on top of nothing would drop every unchanged server.
        logger.error("%s; rebuilding it with a full sync", exc)
        existing = {}
        state = None
    logger.info("Existing servers: %d", len(existing))

    full = should_do_full_sync(state, config, started)

    async with httpx.AsyncClient(transport=transport, follow_redirects=True) as client:
        # Stage 2: Collect
        registry = RegistryClient(
            client,
            base_url=config.registry_base_url,
            page_delay=config.registry_page_delay,
        )
        if full or state is None:
            logger.info("Performing full sync...")
            entries = await registry.fetch_all_servers()
        else:
            logger.info("Performing incremental sync since %s...", state.last_sync_at)
            entries = await registry.fetch_updated_servers(state.last_sync_at)
        logger.info("Fetched %d servers from registry", len(entries))

        # Stage 3: Merge
        servers = merge_entries(existing, entries)

        # Stage 4: Enrich
        if entries:
            to_enrich = select_for_enrichment(servers, entries, full)
            logger.info("Enriching %d servers...", len(to_enrich))
            options = config.enrichment.model_copy(update={"skip_if_fresh": not full})
            coordinator = EnrichmentCoordinator(
                default_enrichers(client, config), options
            )
            for server in await coordinator.enrich_many(to_enrich):
                servers[server.name] = server

    # Stage 5: Compute
    records = [compute_server_fields(s) for s in servers.values()]

    # Stage 6: Save
    save_servers(config.servers_path, records)

    # The run's start time, so entries updated mid-run are picked up next time.
    synced_at = format_timestamp(started)
    new_state = SyncState(
        last_sync_at=synced_at,
        total_servers=len(records),
        last_full_sync_at=(
            synced_at if full or state is None else state.last_full_sync_at
        ),
        version=cfg.SYNC_STATE_VERSION,
    )
    save_sync_state(config.sync_state_path, new_state)

    _log_summary(records)
    logger.info("Sync complete in %.1fs", time.monotonic() - t0)
    return new_state


def _log_summary(records: list[ServerRecord]) -> None:
    logger.info("=== Summary ===")
    logger.info("Total servers: %d", len(records))
    for status in ("active", "deprecated"):
        count = sum(1 for s in records if s.status == status)
        logger.info("%s: %d", status.capitalize(), count)
    for source in ("github", "npm", "pypi", "nuget", "docker", "mcpb"):
        count = sum(1 for s in records if getattr(s.enrichment, source) is not None)
        logger.info("With %s: %d", source, count)
    logger.info("With remotes: %d", sum(1 for s in records if s.remotes))
