#!/usr/bin/env python3
"""
Daily crawl of the configured allow-list.

Usage: python daily_crawl.py [source ...] [--config changelog.yml] [--verbose]

Exits 1 only when every source failed.
"""

import argparse
import asyncio
import logging
import os
import sys

# Add project root to PYTHONPATH so imports work when running this script directly
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from core.batch import run_batch
from core.config import load_config
from core.errors import ChangelogError
from core.service import ChangelogService


def main() -> int:
    parser = argparse.ArgumentParser(description="Crawl competitor changelogs once")
    parser.add_argument("sources", nargs="*", help="Source ids (default: allow_list from config)")
    parser.add_argument("--config", default=None, help="Path to config YAML (default: changelog.yml)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    )
    logger = logging.getLogger("daily_crawl")

    try:
        config = load_config(args.config)
    except ChangelogError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    service = ChangelogService(config)
    logger.info(f"Starting daily crawl at {config.data_dir}")
    try:
        return asyncio.run(run_batch(service, args.sources or None))
    except ChangelogError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
