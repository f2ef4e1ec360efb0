"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Command-line entry point.

Usage examples:
  aigate init
  aigate start --config ./aigate.json --port 8080
  aigate start --debug
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from .config import DEFAULT_CONFIG_PATH, env_first, load_config, write_sample_config
from .errors import ConfigurationError

logger = logging.getLogger("aigate.cli")


def _port(value: str) -> int:
    try:
        port = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid port specified: {value}") from exc
    if port < 1 or port > 65535:
        raise argparse.ArgumentTypeError(
            f"Invalid port specified: {port}. Port must be between 1 and 65535."
        )
    return port


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aigate",
        description=(
            "Reverse proxy for generative-AI providers (OpenAI, Azure OpenAI, "
            "Anthropic, ...) with caching, authentication and rate limiting."
        ),
    )
    sub = parser.add_subparsers(dest="command", required=True)

    start = sub.add_parser("start", help="Start the proxy server.")
    start.add_argument(
        "-p",
        "--port",
        type=_port,
        default=env_first("AIGATE_PORT", default="8080"),
        help="Port to start the proxy server on.",
    )
    start.add_argument("--host", default="0.0.0.0", help="Interface to bind.")
    start.add_argument(
        "-c",
        "--config",
        default=None,
        help=f"Path to the configuration file (default: $AIGATE_CONFIG or {DEFAULT_CONFIG_PATH}).",
    )
    start.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Enable debug logging of incoming requests and upstream calls.",
    )

    init = sub.add_parser("init", help="Initialize a new configuration file.")
    init.add_argument("--path", default=DEFAULT_CONFIG_PATH)
    init.add_argument(
        "--force", action="store_true", help="Overwrite an existing file."
    )
    return parser


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _cmd_start(args: argparse.Namespace) -> int:
    try:
        config = load_config(args.config)
    except ConfigurationError as exc:
        logger.error("An error occurred while reading the configuration file: %s", exc)
        return 1

    from .server import run

    logger.info("Starting server on port %d.", args.port)
    run(
        config,
        host=args.host,
        port=args.port,
        log_level="debug" if args.debug else "info",
    )
    return 0


def _cmd_init(args: argparse.Namespace) -> int:
    target = Path(args.path)
    if target.exists() and not args.force:
        logger.error("%s already exists; pass --force to overwrite it.", target)
        return 1
    logger.info("Initializing new configuration file.")
    write_sample_config(target)
    logger.info("Wrote %s", target)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(getattr(args, "debug", False))
    if args.command == "start":
        return _cmd_start(args)
    return _cmd_init(args)


if __name__ == "__main__":
    sys.exit(main())
