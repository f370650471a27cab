"""Docker Hub enricher for OCI packages."""

from __future__ import annotations

import asyncio
from typing import NamedTuple

import httpx

from mcp_list import config
from mcp_list.enrichers.base import Enricher
from mcp_list.output.models import DockerEnrichment, ServerRecord

DOCKER_HUB = "docker.io"


class ImageRef(NamedTuple):
    registry: str
    namespace: str
    repository: str
    tag: str


def parse_image(identifier: str) -> ImageRef | None:
    """Parse ``[registry/]namespace/repository[:tag][@digest]``.

    Bare names ("nginx") are official Docker Hub images under ``library``.
    """
    image = identifier.strip().split("@", 1)[0]
    if not image:
        return None
    # A colon after the last slash is a tag; before it, a registry port.
    path, tag = image, "latest"
    last_slash = image.rfind("/")
    colon = image.rfind(":")
    if colon > last_slash:
        path, tag = image[:colon], image[colon + 1:] or "latest"

    parts = path.split("/")
    if any(not p for p in parts):
        return None
    if len(parts) == 1:
        return ImageRef(DOCKER_HUB, "library", parts[0], tag)

    first = parts[0]
    is_registry = "." in first or ":" in first or first == "localhost"
    if not is_registry:
        if len(parts) == 2:
            return ImageRef(DOCKER_HUB, parts[0], parts[1], tag)
        return None
    if first in ("docker.io", "index.docker.io", "registry-1.docker.io"):
        rest = parts[1:]
        if len(rest) == 1:
            return ImageRef(DOCKER_HUB, "library", rest[0], tag)
        if len(rest) == 2:
            return ImageRef(DOCKER_HUB, rest[0], rest[1], tag)
        return None
    if len(parts) >= 3:
        return ImageRef(first, parts[1], "/".join(parts[2:]), tag)
    return None


class DockerEnricher(Enricher):
    key = "docker"
    label = "Docker"

    def __init__(
        self,
        client: httpx.AsyncClient,
        username: str | None = None,
        password: str | None = None,
    ) -> None:
        super().__init__(client)
        self._auth = (username, password) if username and password else None

    async def _fetch_repo(self, ref: ImageRef) -> dict | None:
        kwargs = {"auth": self._auth} if self._auth else {}
        data = await self._get_json(
            f"{config.DOCKER_HUB_API_URL}/repositories/{ref.namespace}/{ref.repository}",
            f"{ref.namespace}/{ref.repository}",
            **kwargs,
        )
        return data if isinstance(data, dict) else None

    async def _fetch_tags(self, ref: ImageRef) -> list[str]:
        data = await self._get_optional_json(
            f"{config.DOCKER_HUB_API_URL}/repositories/{ref.namespace}/{ref.repository}/tags",
            params={
                "page_size": config.DOCKER_TAGS_PAGE_SIZE,
                "ordering": "-last_updated",
            },
        )
        if not isinstance(data, dict):
            return []
        return [t["name"] for t in data.get("results") or [] if t.get("name")]

    async def enrich(self, record: ServerRecord) -> DockerEnrichment | None:
        identifier = self.find_package(record, "oci")
        if not identifier:
            return None

        ref = parse_image(identifier)
        if ref is None:
            self.logger.warning("[Docker] Could not parse identifier: %s", identifier)
            return None
        if ref.registry != DOCKER_HUB:
            self.logger.info("[Docker] Skipping non-Docker Hub image: %s", ref.registry)
            return None

        self.logger.info("[Docker] Fetching: %s/%s", ref.namespace, ref.repository)
        repo, tags = await asyncio.gather(self._fetch_repo(ref), self._fetch_tags(ref))
        if repo is None:
            return None

        return DockerEnrichment(
            pulls=repo.get("pull_count") or 0,
            stars=repo.get("star_count") or 0,
            last_updated=repo.get("last_updated"),
            tags=tags,
            description=repo.get("description") or None,
            is_official=bool(repo.get("is_official")),
            is_automated=bool(repo.get("is_automated")),
        )
