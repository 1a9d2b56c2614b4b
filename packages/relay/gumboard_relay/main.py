"""
Relay entry point.

Loads configuration, configures logging, and runs the relay.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

import structlog

from .config import load_config
from .service import RelayService


def configure_logging(level: str = "info", fmt: str = "json") -> None:
    """Configure structlog with the specified level and format."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            structlog.get_level_from_name(level)
        ),
    )


def run() -> None:
    """CLI entry point for the relay."""
    parser = argparse.ArgumentParser(description="Gumboard real-time board relay")
    parser.add_argument(
        "-c", "--config",
        default=None,
        help="Path to a YAML configuration file (defaults are used when omitted)",
    )
    args = parser.parse_args()

    try:
        config = load_config(args.config)
    except FileNotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except Exception as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        sys.exit(1)

    configure_logging(config.logging.level, config.logging.format)
    log = structlog.get_logger()
    log.info("relay.config_loaded", config_path=args.config, port=config.server.port)

    service = RelayService(config)
    try:
        asyncio.run(service.run_forever())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
