#!/usr/bin/env python3
"""
Serve the changelog API without the scheduler.

Usage: python api_server.py [--host 0.0.0.0] [--port 8080] [--config changelog.yml]
"""

import argparse
import logging
import os
import sys

from aiohttp import web

# Add project root to PYTHONPATH so imports work when running this script directly
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from core.api import create_app
from core.config import load_config
from core.service import ChangelogService


def main() -> None:
    parser = argparse.ArgumentParser(description="Changelog API server")
    parser.add_argument("--config", default=None, help="Path to config YAML (default: changelog.yml)")
    parser.add_argument("--host", default=None, help="Bind address (default: api.host)")
    parser.add_argument("--port", type=int, default=None, help="Port (default: api.port)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    )

    config = load_config(args.config)
    app = create_app(ChangelogService(config))
    web.run_app(app, host=args.host or config.api.host, port=args.port or config.api.port)


if __name__ == "__main__":
    main()
