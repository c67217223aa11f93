"""
=============================================================================
COMMAND-LINE ENTRY POINT
=============================================================================

Runs the sample application.

    python -m routekit                        # 127.0.0.1:8090
    python -m routekit --port 3000
    python -m routekit --host 0.0.0.0         # containers
    python -m routekit --static ./public --templates ./templates
    routekit --request-timeout 5 -l DEBUG     # installed console script

Settings come from, highest priority first: flags, ROUTEKIT_* environment
variables, ServerConfig defaults.

=============================================================================
"""

import argparse
import logging
import sys

from . import __version__
from .config import LOG_LEVELS, ServerConfig
from .http import Router
from .middleware import LoggingMiddleware
from .sample import create_router
from .server import HTTPServer


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="routekit",
        description="Run the routekit sample application",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  routekit                                  # Run with defaults
  routekit --port 3000                      # Custom port
  routekit --workers 8                      # 8..16 worker threads
  routekit --static ./public                # Serve other static files
  routekit --request-timeout 5              # 503 after 5 seconds
        """,
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--host", "-H", default=None,
                        help="Host to bind to (default: 127.0.0.1)")
    parser.add_argument("--port", "-p", type=int, default=None,
                        help="Port to listen on (default: 8090)")

    # ─────────────────────────────────────────────────────────────────────
    # RUNTIME
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--workers", "-w", type=int, default=None,
                        help="Minimum worker threads; the maximum is twice this")
    parser.add_argument("--request-timeout", type=float, default=None,
                        help="Seconds a request may run before 503 (default: 30)")

    # ─────────────────────────────────────────────────────────────────────
    # APPLICATION
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--static", "-s", default=None,
                        help="Directory served under /static")
    parser.add_argument("--templates", "-t", default=None,
                        help="Template directory for /document")
    parser.add_argument("--log-level", "-l", choices=LOG_LEVELS, default=None,
                        help="Logging level (default: INFO)")

    parser.add_argument("--version", "-v", action="version",
                        version=f"routekit {__version__}")
    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Environment first, then every flag that was given on top."""
    config = ServerConfig.from_env()

    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.workers is not None:
        config.min_workers = args.workers
        config.max_workers = args.workers * 2
    if args.request_timeout is not None:
        config.request_timeout = args.request_timeout
    if args.static is not None:
        config.static_dir = args.static
    if args.templates is not None:
        config.template_dir = args.templates
    if args.log_level is not None:
        config.log_level = args.log_level

    return config


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = config_from_args(args)
        config.validate()

        # Access logging first so it times the whole request
        router = Router()
        router.all(LoggingMiddleware(log_format=config.log_format))
        create_router(
            template_dir=config.template_dir,
            static_dir=config.static_dir,
            suppress_root_not_found=config.suppress_root_not_found,
            static_url_prefix=config.static_url_prefix,
            router=router,
        )

        HTTPServer(router, config).run()
    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
