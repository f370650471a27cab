"""CLI entrypoint — python -m mcp_list."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="mcp-list",
        description="Sync and enrich the MCP server registry snapshot",
    )
    parser.add_argument(
        "--full",
        action="store_true",
        help="Force a full sync (also FULL_SYNC=true)",
    )
    parser.add_argument(
        "-d", "--data-dir",
        default=None,
        help="Directory for servers.json and sync-state.json (default: ./data)",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Servers enriched at once",
    )
    parser.add_argument(
        "--delay-ms",
        type=int,
        default=None,
        help="Pause between source calls, in milliseconds",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
    )
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)

    from mcp_list.config import load_config
    from mcp_list.pipeline import run

    config = load_config(
        force_full_sync=True if args.full else None,
        data_dir=args.data_dir,
        concurrency=args.concurrency,
        delay=args.delay_ms / 1000 if args.delay_ms is not None else None,
    )

    try:
        asyncio.run(run(config))
    except KeyboardInterrupt:
        print("\nAborted.")
        sys.exit(1)
    except Exception:
        logging.getLogger("mcp_list").exception("Fatal error")
        sys.exit(1)


if __name__ == "__main__":
    main()
