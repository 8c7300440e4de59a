"""
=============================================================================
CLI ENTRY POINT
=============================================================================

    # Defaults, plus whatever .env and the environment provide
    python -m splitstack

    # Listen on all interfaces in production mode
    python -m splitstack --host 0.0.0.0 --env production

    # Different .env, more workers, chatty logs
    python -m splitstack --env-file deploy/.env --workers 32 --log-level DEBUG

Precedence: CLI flag > environment > .env file > default. Flags that are
not given leave the environment's value alone.
=============================================================================
"""

from typing import List, Optional
import argparse
import logging
import sys

from . import __version__
from .app import create_app
from .config import Mode, ServerConfig
from .server import HTTPServer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="splitstack",
        description="API server for a split client/server web application",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m splitstack                          # PORT / CLIENT_URL / ... from env
  python -m splitstack --port 8000              # Custom port
  python -m splitstack --env production         # Serve client/dist as well
        """,
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--host", "-H", help="Host to bind to (env HOST, default 127.0.0.1)")
    parser.add_argument("--port", "-p", type=int, help="Port to listen on (env PORT, default 5000)")

    # ─────────────────────────────────────────────────────────────────────
    # ENVIRONMENT
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--env", "-e",
        choices=[m.value for m in Mode],
        help="Mode (env APP_ENV / NODE_ENV)",
    )
    parser.add_argument("--env-file", help="Path of the .env file to load (default: nearest .env)")

    # ─────────────────────────────────────────────────────────────────────
    # PERFORMANCE / LOGGING
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--workers", "-w", type=int, help="Max worker threads (env WORKERS, default 16)")
    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Logging verbosity (env LOG_LEVEL, default INFO)",
    )
    parser.add_argument("--version", "-v", action="version", version=f"%(prog)s {__version__}")
    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Environment first, then the flags that were actually given."""
    config = ServerConfig.from_env(args.env_file)

    if args.host:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.env:
        config.mode = Mode.parse(args.env)
    if args.workers is not None:
        config.max_workers = args.workers
        config.min_workers = min(config.min_workers, args.workers)
    if args.log_level:
        config.log_level = args.log_level

    config.validate()
    return config


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = config_from_args(args)
        app = create_app(config)
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    server = HTTPServer(app, config)
    try:
        server.run()
    except OSError as e:
        logging.getLogger(__name__).error(f"Server failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
