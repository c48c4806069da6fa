"""
Command-line entry point.

    python -m userapi
    python -m userapi --port 8000 --host 0.0.0.0
    python -m userapi --workers 8 --log-format json

Settings come from USERAPI_* environment variables first (see
ServerConfig.from_env); flags given on the command line win.
"""

import argparse
import sys

from . import __version__
from .app import create_app
from .config import ServerConfig


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="userapi",
        description="In-memory user API served over HTTP/1.1",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  userapi                          # 127.0.0.1:3000
  userapi --port 8000              # custom port
  userapi --host 0.0.0.0           # listen on all interfaces
  userapi --log-format json        # JSON access log
        """,
    )
    parser.add_argument("--host", "-H", help="Host to bind to (default: 127.0.0.1)")
    parser.add_argument("--port", "-p", type=int, help="Port to listen on (default: 3000)")
    parser.add_argument("--workers", "-w", type=int, help="Maximum worker threads (default: 16)")
    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument("--log-format", choices=["text", "json"], help="Access log format (default: text)")
    parser.add_argument("--version", "-v", action="version", version=f"userapi {__version__}")
    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Environment-derived config with command-line overrides applied."""
    config = ServerConfig.from_env()
    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.workers is not None:
        config.max_workers = args.workers
        config.min_workers = min(config.min_workers, args.workers)
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.log_format is not None:
        config.log_format = args.log_format
    return config


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = config_from_args(args)
        server = create_app(config)
        server.run()
    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
