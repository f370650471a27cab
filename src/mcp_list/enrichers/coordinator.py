"""Enrichment coordinator.

Runs every registered enricher over a server, one source after another,
and fans out over many servers with a fixed-size pool of workers.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

import httpx

from mcp_list.config import EnrichmentOptions, SyncConfig
from mcp_list.enrichers.base import Enricher
from mcp_list.enrichers.docker import DockerEnricher
from mcp_list.enrichers.github import GitHubEnricher
from mcp_list.enrichers.mcpb import McpbEnricher
from mcp_list.enrichers.npm import NpmEnricher
from mcp_list.enrichers.nuget import NuGetEnricher
from mcp_list.enrichers.pypi import PyPiEnricher
from mcp_list.output.models import ComputedFields, ServerRecord

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a Z suffix."""
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def default_enrichers(client: httpx.AsyncClient, config: SyncConfig) -> list[Enricher]:
    """The fixed source sequence used by a sync run."""
    return [
        GitHubEnricher(client, token=config.github_token),
        NpmEnricher(client),
        PyPiEnricher(client),
        NuGetEnricher(client),
        DockerEnricher(
            client,
            username=config.docker_username,
            password=config.docker_password,
        ),
        McpbEnricher(client, github_token=config.github_token),
    ]


def is_fresh(record: ServerRecord, options: EnrichmentOptions, now: datetime) -> bool:
    last = parse_timestamp(record.enrichment.last_enriched_at)
    if last is None:
        return False
    return now - last < options.max_age


class EnrichmentCoordinator:
    """Applies a sequence of enrichers to server records."""

    def __init__(
        self,
        enrichers: list[Enricher],
        options: EnrichmentOptions | None = None,
    ) -> None:
        self.enrichers = enrichers
        self.options = options or EnrichmentOptions()

    async def enrich_one(self, record: ServerRecord) -> ServerRecord:
        """Return ``record`` with enrichment refreshed from every source.

        Sources that produce nothing keep whatever slot the record already
        had. Fresh records are returned untouched.
        """
        opts = self.options
        if opts.skip_if_fresh and is_fresh(record, opts, utc_now()):
            logger.debug("Skipping %s (data is fresh)", record.name)
            return record

        logger.info("Enriching: %s", record.name)
        updates: dict[str, object] = {}

        for enricher in self.enrichers:
            if enricher.rate_limited:
                continue
            try:
                result = await enricher.enrich(record)
            except Exception:
                logger.exception("%s error for %s", enricher.label, record.name)
                result = None
            if result is not None:
                updates[enricher.key] = result

            await asyncio.sleep(opts.delay)

        updates["last_enriched_at"] = format_timestamp(utc_now())
        enrichment = record.enrichment.model_copy(update=updates)
        return record.model_copy(update={"enrichment": enrichment})

    async def enrich_many(self, records: list[ServerRecord]) -> list[ServerRecord]:
        """Enrich ``records`` with at most ``concurrency`` in flight.

        Results come back in input order.
        """
        opts = self.options
        total = len(records)
        logger.info("Starting enrichment for %d servers", total)
        logger.info("Concurrency: %d, delay: %.2fs", opts.concurrency, opts.delay)

        queue: asyncio.Queue[tuple[int, ServerRecord]] = asyncio.Queue()
        for item in enumerate(records):
            queue.put_nowait(item)

        results: list[ServerRecord | None] = [None] * total
        done = 0

        async def worker() -> None:
            nonlocal done
            while True:
                try:
                    index, record = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                results[index] = await self.enrich_one(record)
                done += 1
                if done % 10 == 0 or done == total:
                    logger.info(
                        "Progress: %d%% (%d/%d)", done * 100 // total, done, total
                    )
                if not queue.empty():
                    await asyncio.sleep(opts.delay * 2)

        workers = min(opts.concurrency, total)
        await asyncio.gather(*(worker() for _ in range(workers)))

        logger.info("Completed enrichment for %d servers", total)
        return [r for r in results if r is not None]


def compute_server_fields(record: ServerRecord) -> ServerRecord:
    """Recompute the ``_computed`` block from the rest of the record."""
    parts = record.name.split("/", 1)
    organization = parts[0] if len(parts) == 2 else ""
    server_name = parts[1] if len(parts) == 2 else parts[0]

    package_types: list[str] = []
    for pkg in record.packages:
        if pkg.registry_type not in package_types:
            package_types.append(pkg.registry_type)

    e = record.enrichment
    total_downloads = sum(
        (
            e.npm.monthly_downloads if e.npm else 0,
            e.pypi.downloads if e.pypi else 0,
            e.nuget.total_downloads if e.nuget else 0,
            e.docker.pulls if e.docker else 0,
            e.mcpb.download_count if e.mcpb else 0,
        )
    )

    computed = ComputedFields(
        organization=organization,
        server_name=server_name,
        package_types=package_types,
        has_remote=len(record.remotes) > 0,
        total_downloads=total_downloads,
        stars=e.github.stars if e.github else 0,
    )
    return record.model_copy(update={"computed": computed})
