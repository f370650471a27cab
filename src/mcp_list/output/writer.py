"""JSON snapshot store: servers.json and sync-state.json.

Both files are rewritten whole on every run. Writes go to a sibling temp
file first and are moved into place, so a crash never leaves a truncated
snapshot behind.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from mcp_list.output.models import ServerRecord, SyncState

logger = logging.getLogger(__name__)

_servers_adapter = TypeAdapter(list[ServerRecord])


class SnapshotError(Exception):
    """servers.json exists but could not be read or validated."""

    def __init__(self, path: Path, reason: Exception) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Unreadable snapshot {path}: {reason}")


def load_servers(path: Path) -> dict[str, ServerRecord]:
    """Load the previous snapshot keyed by server name.

    A missing file is an empty snapshot. A file that exists but does not
    validate raises SnapshotError so callers never mistake it for one.
    """
    if not path.exists():
        return {}
    try:
        records = _servers_adapter.validate_json(path.read_bytes())
    except (ValidationError, OSError) as exc:
        raise SnapshotError(path, exc) from exc
    return {r.name: r for r in records}


def load_sync_state(path: Path) -> SyncState | None:
    """Load the sync checkpoint, or None on first run."""
    if not path.exists():
        return None
    try:
        return SyncState.model_validate_json(path.read_bytes())
    except (ValidationError, OSError) as exc:
        logger.error("Error loading sync state from %s: %s", path, exc)
        return None


def save_servers(path: Path, servers: list[ServerRecord]) -> None:
    """Write all servers sorted by name."""
    ordered = sorted(servers, key=lambda s: s.name)
    payload = _servers_adapter.dump_python(
        ordered, mode="json", by_alias=True, exclude_none=True
    )
    _write_json(path, payload)
    logger.info("Saved %d servers to %s", len(ordered), path)


def save_sync_state(path: Path, state: SyncState) -> None:
    _write_json(path, state.model_dump(mode="json", by_alias=True, exclude_none=True))
    logger.info("Saved sync state to %s", path)


def _write_json(path: Path, payload: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
            f.write("\n")
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
