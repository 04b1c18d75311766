"""
Health checker CLI.

    task-healthcheck [config.yaml] [--once]
"""

import argparse
import asyncio
import sys
from typing import Optional

import structlog

from healthcheck.checker import run
from healthcheck.config import ConfigError, load_config
from healthcheck.log import setup_logging

logger = structlog.get_logger("healthcheck.cli")


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="task-healthcheck",
        description="Poll HTTP endpoints and alert a webhook when they are unhealthy",
    )
    parser.add_argument(
        "config", nargs="?", default="config.yaml", help="Path to config file (default: config.yaml)"
    )
    parser.add_argument("--once", action="store_true", help="Run a single round and exit")
    parser.add_argument("--log-level", default="INFO", help="Log level (default: INFO)")
    args = parser.parse_args(argv)

    setup_logging(args.log_level)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"❌ Failed to load config: {e}", file=sys.stderr)
        return 1

    try:
        asyncio.run(run(config, iterations=1 if args.once else None))
    except KeyboardInterrupt:
        logger.info("health checker stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
