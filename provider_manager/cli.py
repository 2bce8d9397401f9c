"""CLI argument parsing and main entry point.

``provider-manager server`` runs the management API under Uvicorn together
with the background provider health monitor.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from typing import TYPE_CHECKING, Optional, Tuple

import uvicorn

from provider_manager.constants import DEFAULT_LOG_LEVEL, SERVER_NAME, SERVER_VERSION
from provider_manager.display.logging_config import set_log_level, setup_logging
from provider_manager.errors import ConfigurationError

if TYPE_CHECKING:
    from provider_manager.config.schema import ManagerConfig

module_logger = logging.getLogger(__name__)

uvicorn_svr_inst: Optional[uvicorn.Server] = None

# Config file search order (first match wins)
_CONFIG_SEARCH_ORDER = ("config.yaml", "config.yml")


def _find_config_file() -> Optional[str]:
    """Return ``config.yaml``/``config.yml`` from the CWD, or ``None``."""
    for name in _CONFIG_SEARCH_ORDER:
        candidate = os.path.join(os.getcwd(), name)
        if os.path.isfile(candidate):
            return candidate
    return None


# ── ``provider-manager server`` ─────────────────────────────────────────


def _load_config_with_logging(
    args: argparse.Namespace,
) -> Tuple[ManagerConfig, Optional[str], str, str]:
    """Set up file logging, then load the config.

    Logging comes first so config warnings reach the log file.  Its level is
    taken from ``--log-level``, then ``$SVC_LOG_LEVEL``, and is switched to
    the config file's level afterwards when no flag was given.

    Returns:
        (config, absolute config path or None, log file path, log level)
    """
    from provider_manager.config import load_manager_config

    # Resolve config path: CLI flag, env var, auto-detect, defaults only
    config_path = args.config or os.environ.get("PROVIDER_MANAGER_CONFIG") or _find_config_file()
    cfg_abs_path = os.path.abspath(config_path) if config_path else None

    log_fpath, log_lvl = setup_logging(
        args.log_level or os.environ.get("SVC_LOG_LEVEL") or DEFAULT_LOG_LEVEL
    )
    config = load_manager_config(cfg_abs_path)
    if not args.log_level and config.server.log_level.upper() != log_lvl:
        log_lvl = set_log_level(config.server.log_level)
    return config, cfg_abs_path, log_fpath, log_lvl


async def _run_server(args: argparse.Namespace) -> None:
    """Async main for the server subcommand."""
    global uvicorn_svr_inst

    from provider_manager.runtime import ProviderManagerService
    from provider_manager.server.app import create_app

    config, cfg_abs_path, log_fpath, cfg_log_lvl = _load_config_with_logging(args)

    # CLI flags win over the config file and environment.
    host = args.host or config.server.host
    port = args.port or config.server.port

    module_logger.info(
        "---- %s v%s starting (file log level: %s, config: %s) ----",
        SERVER_NAME,
        SERVER_VERSION,
        cfg_log_lvl,
        cfg_abs_path or "<defaults>",
    )

    service = ProviderManagerService(config, config_path=cfg_abs_path)
    app = create_app(service)
    app.state.host = host
    app.state.port = port
    app.state.actual_log_file = log_fpath

    uvicorn_cfg = uvicorn.Config(
        app=app,
        host=host,
        port=port,
        log_config=None,
        log_level=cfg_log_lvl.lower() if cfg_log_lvl == "DEBUG" else "warning",
    )
    uvicorn_svr_inst = uvicorn.Server(uvicorn_cfg)

    module_logger.info("Preparing to start Uvicorn server: http://%s:%s", host, port)
    print(f"{SERVER_NAME} v{SERVER_VERSION} listening on http://{host}:{port} (log: {log_fpath})")
    try:
        await uvicorn_svr_inst.serve()
    except (KeyboardInterrupt, SystemExit) as e_exit:
        module_logger.info("Server stopped due to '%s'.", type(e_exit).__name__)
    finally:
        module_logger.info("%s has shut down or is shutting down.", SERVER_NAME)


def _cmd_server(args: argparse.Namespace) -> None:
    """Entry-point for ``provider-manager server``."""

    def _shutdown_handler(sig: int, frame: object) -> None:
        module_logger.info("Signal %s received, shutting down gracefully...", sig)
        if uvicorn_svr_inst is not None:
            uvicorn_svr_inst.should_exit = True

    signal.signal(signal.SIGINT, _shutdown_handler)
    signal.signal(signal.SIGTERM, _shutdown_handler)

    try:
        asyncio.run(_run_server(args))
    except ConfigurationError as e_cfg:
        print(f"Configuration error: {e_cfg}", file=sys.stderr)
        sys.exit(2)
    except KeyboardInterrupt:
        module_logger.info("%s interrupted by KeyboardInterrupt.", SERVER_NAME)
    except Exception as e_fatal:
        module_logger.exception("%s encountered an uncaught fatal error: %s", SERVER_NAME, e_fatal)
        sys.exit(1)
    finally:
        module_logger.info("%s application finished.", SERVER_NAME)


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser with the server subcommand."""
    parser = argparse.ArgumentParser(
        prog="provider-manager",
        description=f"{SERVER_NAME} v{SERVER_VERSION}",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {SERVER_VERSION}")

    subparsers = parser.add_subparsers(dest="command")

    sp_server = subparsers.add_parser(
        "server",
        help="Run the provider manager API and health monitor",
    )
    sp_server.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host address (default: from config, 0.0.0.0)",
    )
    sp_server.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port (default: from config, 8080)",
    )
    sp_server.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["debug", "info", "warning", "error", "critical"],
        help="Set file logging level (default: from config, info)",
    )
    sp_server.add_argument(
        "--config",
        type=str,
        default=None,
        metavar="PATH",
        help=(
            "Path to configuration file (YAML). "
            "Default: $PROVIDER_MANAGER_CONFIG, then ./config.yaml, then built-in defaults"
        ),
    )
    sp_server.set_defaults(func=_cmd_server)

    return parser


def main(argv: Optional[list] = None) -> None:
    """Program entry point: parse arguments and dispatch to subcommand."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)
    else:
        args.func(args)


if __name__ == "__main__":
    main()
