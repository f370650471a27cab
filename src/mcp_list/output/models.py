"""Pydantic models for the server snapshot and sync state."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SERVER_STATUSES = ("active", "deprecated", "deleted")


class _Model(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _RegistryModel(_Model):
    """Registry-sourced shapes keep any fields we don't model."""

    model_config = ConfigDict(extra="allow")


# --- Registry-sourced fields ---


class Repository(_RegistryModel):
    url: str = ""
    source: str | None = None


class EnvironmentVariable(_RegistryModel):
    name: str
    description: str | None = None
    is_required: bool | None = None
    is_secret: bool | None = None


class RemoteHeader(_RegistryModel):
    name: str
    description: str | None = None
    is_required: bool | None = None
    is_secret: bool | None = None


class Package(_RegistryModel):
    registry_type: str = ""
    identifier: str = ""
    # Older entries carry a list of transport names, newer ones an object.
    transport: Any = None
    environment_variables: list[EnvironmentVariable] | None = None
    file_sha256: str | None = None


class Remote(_RegistryModel):
    type: str = ""
    url: str = ""
    headers: list[RemoteHeader] | None = None


# --- Enrichment slots ---


class GitHubOwner(_Model):
    login: str
    avatar: str = ""


class GitHubEnrichment(_Model):
    stars: int = 0
    forks: int = 0
    open_issues: int = 0
    watchers: int = 0
    last_commit: str | None = None
    license: str | None = None
    topics: list[str] = Field(default_factory=list)
    language: str | None = None
    owner: GitHubOwner | None = None
    archived: bool = False
    default_branch: str | None = None


class NpmEnrichment(_Model):
    weekly_downloads: int = 0
    monthly_downloads: int = 0
    latest_version: str
    dependencies: int = 0
    last_published: str | None = None
    maintainers: list[str] = Field(default_factory=list)
    homepage: str | None = None
    keywords: list[str] = Field(default_factory=list)


class PyPiEnrichment(_Model):
    downloads: int = 0
    latest_version: str
    requires_python: str | None = None
    last_published: str | None = None
    author: str | None = None
    author_email: str | None = None
    homepage: str | None = None
    keywords: list[str] = Field(default_factory=list)


class NuGetEnrichment(_Model):
    total_downloads: int = 0
    latest_version: str
    last_published: str | None = None
    authors: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    project_url: str | None = None


class DockerEnrichment(_Model):
    pulls: int = 0
    stars: int = 0
    last_updated: str | None = None
    tags: list[str] = Field(default_factory=list)
    description: str | None = None
    is_official: bool = False
    is_automated: bool = False


class McpbEnrichment(_Model):
    release_url: str | None = None
    download_count: int = 0
    asset_size: int = 0
    last_release: str | None = None
    platforms: list[str] = Field(default_factory=list)
    tag_name: str | None = None
    prerelease: bool = False


class Enrichment(_Model):
    last_enriched_at: str = ""
    github: GitHubEnrichment | None = None
    npm: NpmEnrichment | None = None
    pypi: PyPiEnrichment | None = None
    nuget: NuGetEnrichment | None = None
    docker: DockerEnrichment | None = None
    mcpb: McpbEnrichment | None = None


# --- Records ---


class ComputedFields(_Model):
    organization: str = ""
    server_name: str = ""
    package_types: list[str] = Field(default_factory=list)
    has_remote: bool = False
    total_downloads: int = 0
    stars: int = 0


class ServerRecord(_Model):
    name: str
    description: str = ""
    version: str = ""
    repository: Repository | None = None
    packages: list[Package] = Field(default_factory=list)
    remotes: list[Remote] = Field(default_factory=list)
    status: str = "active"  # one of SERVER_STATUSES
    published_at: str = ""
    updated_at: str = ""
    is_latest: bool = True
    enrichment: Enrichment = Field(default_factory=Enrichment)
    computed: ComputedFields = Field(
        default_factory=ComputedFields, alias="_computed"
    )


class SyncState(_Model):
    last_sync_at: str
    last_cursor: str | None = None
    total_servers: int = 0
    last_full_sync_at: str
    version: int = 1
