"""Quick recompute — refreshes _computed in an existing servers.json without
touching the registry or any enrichment source.

Usage: python recompute.py [path/to/servers.json]
"""

import logging
import sys
from pathlib import Path

from mcp_list.config import DATA_DIR, SERVERS_FILE
from mcp_list.enrichers.coordinator import compute_server_fields
from mcp_list.output.writer import SnapshotError, load_servers, save_servers

logger = logging.getLogger("recompute")


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    args = sys.argv[1:] if argv is None else argv
    path = Path(args[0]) if args else Path(DATA_DIR) / SERVERS_FILE
    if not path.exists():
        logger.error("No snapshot at %s", path)
        return 1

    try:
        servers = load_servers(path)
    except SnapshotError as exc:
        logger.error("%s; leaving it untouched", exc)
        return 1

    save_servers(path, [compute_server_fields(s) for s in servers.values()])
    logger.info("Recomputed derived fields for %d servers", len(servers))
    return 0


if __name__ == "__main__":
    sys.exit(main())
