#!/usr/bin/env python3
"""
Launcher for the Mermaidman HTTP binding.

Command-line flags are written back to the MM_* environment variables, so the
app's lifespan (which builds its registry from DocumentConfig.from_env) sees
the same settings. Registry settings are validated before uvicorn starts.
"""

import argparse
import os
import sys

import uvicorn

from .core import DIRECTIONS
from .http.store import DocumentConfig

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8766


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mermaidman-http",
        description="Serve Mermaidman documents over HTTP",
    )
    parser.add_argument("--host", help=f"bind address (MM_HTTP_HOST, default {DEFAULT_HOST})")
    parser.add_argument("--port", type=int, help=f"bind port (MM_HTTP_PORT, default {DEFAULT_PORT})")
    parser.add_argument("--log-level", help="logging level (MM_LOG_LEVEL, default INFO)")
    parser.add_argument(
        "--direction",
        type=str.upper,
        choices=DIRECTIONS,
        help="header direction for documents without one (MM_DIRECTION)",
    )
    parser.add_argument("--undo-limit", type=int, help="undo history per document (MM_UNDO_LIMIT)")
    return parser


def apply_args(args: argparse.Namespace) -> DocumentConfig:
    """
    Export the given flags as MM_* variables and return the resulting
    document configuration. Raises ValueError on invalid settings.
    """
    overrides = {
        "MM_HTTP_HOST": args.host,
        "MM_HTTP_PORT": args.port,
        "MM_LOG_LEVEL": args.log_level.upper() if args.log_level else None,
        "MM_DIRECTION": args.direction,
        "MM_UNDO_LIMIT": args.undo_limit,
    }
    for name, value in overrides.items():
        if value is not None:
            os.environ[name] = str(value)

    return DocumentConfig.from_env()


def main(argv: list[str] | None = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = apply_args(args)
    except ValueError as e:
        parser.error(str(e))

    host = os.getenv("MM_HTTP_HOST", DEFAULT_HOST)
    port = int(os.getenv("MM_HTTP_PORT", str(DEFAULT_PORT)))
    log_level = os.getenv("MM_LOG_LEVEL", "INFO").lower()

    print(
        f"Mermaidman HTTP on {host}:{port} "
        f"(direction={config.direction}, undo_limit={config.undo_limit}, log={log_level.upper()})",
        file=sys.stderr,
    )

    # Imported late so MM_LOG_LEVEL from the command line reaches basicConfig
    from .http.app import app

    try:
        uvicorn.run(app, host=host, port=port, log_level=log_level)
    except KeyboardInterrupt:
        print("Stopped", file=sys.stderr)


if __name__ == "__main__":
    main()
