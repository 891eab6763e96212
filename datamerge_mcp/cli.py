"""CLI argument parsing and main entry point.

Provides two modes of operation, plus a default that picks one from config:

* ``datamerge-mcp stdio`` - serve MCP over stdin/stdout (one session).
* ``datamerge-mcp http``  - run the streamable HTTP server under Uvicorn.
* ``datamerge-mcp``       - run whichever of the two ``server.transport`` names.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional

import uvicorn

from datamerge_mcp.config.loader import find_config_file, load_settings
from datamerge_mcp.config.schema import DataMergeSettings
from datamerge_mcp.constants import DEFAULT_LOG_LEVEL, SERVER_NAME, SERVER_VERSION
from datamerge_mcp.display.logging_config import setup_logging
from datamerge_mcp.errors import ConfigurationError

module_logger = logging.getLogger(__name__)


def _load_settings_or_exit(config_path: Optional[str]) -> DataMergeSettings:
    cfg_fpath = find_config_file(config_path)
    try:
        return load_settings(cfg_fpath)
    except ConfigurationError as exc:
        module_logger.error("Configuration error: %s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)


# ── ``datamerge-mcp stdio`` ─────────────────────────────────────────────


async def _run_stdio(settings: DataMergeSettings) -> None:
    from datamerge_mcp.server.handlers import create_mcp_server
    from datamerge_mcp.server.session.store import SessionStore
    from datamerge_mcp.server.stdio import run_stdio
    from datamerge_mcp.server.tools.registry import ToolRegistry

    store = SessionStore.from_settings(settings.upstream)
    mcp_server = create_mcp_server(ToolRegistry(store, settings.polling))
    await run_stdio(mcp_server, store)


def _cmd_stdio(args: argparse.Namespace, settings: Optional[DataMergeSettings] = None) -> None:
    # stdout carries the protocol stream; logging goes to file only.
    _, cfg_log_lvl = setup_logging(args.log_level, quiet=True)
    module_logger.info(
        "---- %s v%s starting on stdio (file log level: %s) ----",
        SERVER_NAME,
        SERVER_VERSION,
        cfg_log_lvl,
    )
    if settings is None:
        settings = _load_settings_or_exit(args.config)
    if not settings.upstream.api_key:
        module_logger.info("No fallback credential; configure_datamerge must be called first.")
    try:
        asyncio.run(_run_stdio(settings))
    except KeyboardInterrupt:
        module_logger.info("%s interrupted by KeyboardInterrupt.", SERVER_NAME)


# ── ``datamerge-mcp http`` ──────────────────────────────────────────────


def _cmd_http(args: argparse.Namespace, settings: Optional[DataMergeSettings] = None) -> None:
    _, cfg_log_lvl = setup_logging(args.log_level)
    module_logger.info(
        "---- %s v%s starting (file log level: %s) ----",
        SERVER_NAME,
        SERVER_VERSION,
        cfg_log_lvl,
    )
    if settings is None:
        settings = _load_settings_or_exit(args.config)
    host = args.host or settings.server.host
    port = args.port or settings.server.port

    from datamerge_mcp.server.app import create_app

    app = create_app(settings)
    module_logger.info("Preparing to start Uvicorn server: http://%s:%s", host, port)
    print(f"{SERVER_NAME} listening on http://{host}:{port}", file=sys.stderr)
    try:
        uvicorn.run(
            app,
            host=host,
            port=port,
            log_config=None,
            log_level=cfg_log_lvl.lower() if cfg_log_lvl == "DEBUG" else "warning",
        )
    except KeyboardInterrupt:
        module_logger.info("%s interrupted by KeyboardInterrupt.", SERVER_NAME)
    finally:
        module_logger.info("%s has shut down.", SERVER_NAME)


# ── ``datamerge-mcp`` (no subcommand) ───────────────────────────────────


def _cmd_default(args: argparse.Namespace) -> None:
    settings = _load_settings_or_exit(args.config)
    if settings.server.transport == "stdio":
        _cmd_stdio(args, settings)
    else:
        _cmd_http(args, settings)


# ── Parser ──────────────────────────────────────────────────────────────


def _add_common_arguments(sp: argparse.ArgumentParser) -> None:
    sp.add_argument(
        "--config",
        type=str,
        default=None,
        metavar="PATH",
        help=(
            "Path to configuration file (YAML). "
            "Default: $DATAMERGE_MCP_CONFIG or ./datamerge-mcp.yaml if present"
        ),
    )
    sp.add_argument(
        "--log-level",
        type=str,
        default=DEFAULT_LOG_LEVEL.lower(),
        choices=["debug", "info", "warning", "error", "critical"],
        help="Set file logging level (default: info)",
    )


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser with stdio/http subcommands."""
    parser = argparse.ArgumentParser(
        description=f"{SERVER_NAME} v{SERVER_VERSION}",
    )
    parser.add_argument("--version", action="version", version=f"{SERVER_NAME} {SERVER_VERSION}")

    # Without a subcommand the transport comes from server.transport
    parser.set_defaults(
        func=_cmd_default,
        config=None,
        log_level=DEFAULT_LOG_LEVEL.lower(),
        host=None,
        port=None,
    )

    subparsers = parser.add_subparsers(dest="command")

    # ── stdio ───────────────────────────────────────────────────
    sp_stdio = subparsers.add_parser("stdio", help="Serve MCP over stdin/stdout")
    _add_common_arguments(sp_stdio)
    sp_stdio.set_defaults(func=_cmd_stdio)

    # ── http ────────────────────────────────────────────────────
    sp_http = subparsers.add_parser("http", help="Run the streamable HTTP server (Uvicorn)")
    sp_http.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host address (default: from config, else 127.0.0.1)",
    )
    sp_http.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port (default: from config or $PORT, else 3000)",
    )
    _add_common_arguments(sp_http)
    sp_http.set_defaults(func=_cmd_http)

    return parser


def main(argv: Optional[list] = None) -> None:
    """Program entry point: parse arguments and dispatch to subcommand."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    args.func(args)
