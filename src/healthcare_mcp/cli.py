# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Command-line entry point.

Quick start::

    $ export HEALTHCARE_MCP_NCBI_API_KEY="<optional>"
    $ healthcare-mcp --mode session --port 8000

Flags override the environment (and a ``.env`` file in the working directory).
"""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
from typing import Any

from dotenv import load_dotenv

from .config import ServerSettings, TransportMode
from .server import HealthcareMCPServer
from .utils import setup_logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="healthcare-mcp", description="Healthcare MCP server (streamable HTTP)")
    parser.add_argument("--host", help="Bind address")
    parser.add_argument("--port", type=int, help="Listening port")
    parser.add_argument("--path", help="Endpoint path")
    parser.add_argument("--mode", choices=[mode.value for mode in TransportMode], help="Transport mode")
    parser.add_argument("--log-level", help="Log level (DEBUG, INFO, ...)")
    parser.add_argument("--log-json", action="store_true", default=None, help="Emit JSON log lines")
    return parser


def settings_from_args(args: argparse.Namespace) -> ServerSettings:
    overrides: dict[str, Any] = {}
    if args.host:
        overrides["host"] = args.host
    if args.port is not None:
        overrides["port"] = args.port
    if args.path:
        overrides["path"] = args.path
    if args.mode:
        overrides["transport_mode"] = TransportMode(args.mode)
    return ServerSettings(**overrides)


def main(argv: Sequence[str] | None = None) -> None:
    load_dotenv()
    args = build_parser().parse_args(argv)
    setup_logger(level=args.log_level, use_json=args.log_json, force=True)

    settings = settings_from_args(args)
    server = HealthcareMCPServer(settings=settings)
    log_level = (args.log_level or "info").lower()
    try:
        asyncio.run(server.serve(log_level=log_level))
    except KeyboardInterrupt:
        pass


__all__ = ["build_parser", "main", "settings_from_args"]
