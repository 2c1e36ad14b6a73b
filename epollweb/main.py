"""Command-line entry point that starts the web server."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence

from epollweb.log import Logger
from epollweb.server import DEFAULT_RESOURCES_ROOT, WebServer

DEFAULT_PORT = 8080
DEFAULT_LOG_FILE = "running.log"


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="epollweb",
        description="Serve static pages with login and registration forms.",
    )
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--resources", default=str(DEFAULT_RESOURCES_ROOT))
    parser.add_argument("--log-file", default=DEFAULT_LOG_FILE)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Start the server; returns a process exit status."""
    args = _parser().parse_args(argv)
    logger = Logger.get_instance()
    try:
        logger.init(args.log_file, async_mode=True)
    except OSError:
        print(f"Cannot open log file: {args.log_file}", file=sys.stderr)
        return 1
    try:
        print("Server started", flush=True)
        logger.log("INFO", "Server started")
        server = WebServer(args.port, resources_root=args.resources)
        try:
            server.run()
        except OSError as exc:
            print(f"Server failed: {exc}", file=sys.stderr)
            return 1
        except KeyboardInterrupt:
            pass
        return 0
    finally:
        logger.close()


if __name__ == "__main__":
    sys.exit(main())