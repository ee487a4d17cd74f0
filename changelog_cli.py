#!/usr/bin/env python3
"""
Changelog management CLI - inspect sources and stored data, trigger crawls.

Usage: python changelog_cli.py <command> [options]

Commands:
    sources             - List registered sources
    crawl <id> [id...]  - Crawl the given sources now (or "all")
    show <id> [-n N]    - Show the newest stored updates of a source
    status              - Data age and update count per source
    runs [-n N]         - Show the most recent crawl runs
"""

import argparse
import asyncio
import logging
import os
import sys
from datetime import datetime
from typing import Optional

# Add project root to PYTHONPATH
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from core import registry
from core.config import load_config
from core.errors import ChangelogError, UnknownSourceError
from core.infra.store import JsonRecordStore
from core.service import ChangelogService


class Colors:
    """ANSI color codes for terminal output."""
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"
    BOLD = "\033[1m"
    END = "\033[0m"


def format_timestamp(dt: Optional[datetime]) -> str:
    if not dt:
        return "N/A"
    return dt.strftime("%Y-%m-%d %H:%M:%S UTC")


def format_age(minutes: Optional[int]) -> str:
    """Format an age in minutes to human readable."""
    if minutes is None:
        return "never"
    if minutes < 60:
        return f"{minutes}m"
    elif minutes < 1440:
        return f"{minutes / 60:.1f}h"
    else:
        return f"{minutes / 1440:.1f}d"


def age_color(minutes: Optional[int]) -> str:
    if minutes is None or minutes > 48 * 60:
        return Colors.RED
    if minutes > 24 * 60:
        return Colors.YELLOW
    return Colors.GREEN


# ---- #
# Commands


def cmd_sources(service: ChangelogService) -> int:
    sources = service.list_sources()
    print(f"{Colors.BOLD}Registered sources ({len(sources)}){Colors.END}")
    for source in sources:
        daily = f"{Colors.GREEN}daily{Colors.END}" if source["daily"] else "     "
        print(f"  {daily}  {source['id']:<12} {source['name']:<12} {Colors.CYAN}{source['url']}{Colors.END}")
    return 0


async def cmd_crawl(service: ChangelogService, source_ids) -> int:
    ids = None if source_ids == ["all"] else source_ids
    report = await service.crawl(ids)
    for result in report.sources:
        if result.success:
            detail = "unchanged" if result.skipped else f"{result.new_updates} new"
            print(
                f"{Colors.GREEN}✅ {result.source}{Colors.END}: "
                f"{result.update_count} updates ({detail}, {result.duration_ms} ms)"
            )
        else:
            print(f"{Colors.RED}❌ {result.source}{Colors.END}: {result.error}")
    return 1 if report.all_failed else 0


async def cmd_show(store: JsonRecordStore, source_id: str, limit: int) -> int:
    adapter = registry.get(source_id)
    record = await store.retrieve(adapter.source_id)
    if record is None:
        print(f"{Colors.YELLOW}⚠️  No stored data for {adapter.source_id}{Colors.END}")
        return 1

    print(f"{Colors.BOLD}{adapter.display_name}{Colors.END} - {len(record.updates)} updates, "
          f"last scraped {format_timestamp(record.last_scraped)}")
    for update in record.updates[:limit]:
        tags = ", ".join(update.tags)
        print(f"  {Colors.BLUE}{update.date}{Colors.END}  [{update.type.value:<11}] {update.title}")
        if tags:
            print(f"              {Colors.CYAN}{tags}{Colors.END}")
    return 0


async def cmd_status(store: JsonRecordStore) -> int:
    print(f"{Colors.BOLD}{'Source':<12} {'Updates':>8}  {'Age':>7}  Last scraped{Colors.END}")
    for source_id in registry.list_available():
        record = await store.retrieve(source_id)
        age = await store.data_age_minutes(source_id)
        count = len(record.updates) if record else 0
        last = format_timestamp(record.last_scraped) if record else "N/A"
        print(f"{source_id:<12} {count:>8}  {age_color(age)}{format_age(age):>7}{Colors.END}  {last}")
    return 0


async def cmd_runs(store: JsonRecordStore, limit: int) -> int:
    runs = await store.list_runs()
    if not runs:
        print(f"{Colors.YELLOW}⚠️  No runs recorded yet{Colors.END}")
        return 0
    for run in runs[:limit]:
        color = Colors.GREEN if run.failed_scrapes == 0 else (
            Colors.RED if run.successful_scrapes == 0 else Colors.YELLOW
        )
        print(
            f"{format_timestamp(run.timestamp)}  {color}{run.successful_scrapes}/{run.total_companies} ok"
            f"{Colors.END}  {run.total_updates} updates"
        )
        for company in run.companies:
            if not company.success:
                print(f"    {Colors.RED}{company.name}{Colors.END}: {company.error}")
    return 0


async def main() -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(description="Changelog crawler management CLI")
    parser.add_argument("--config", default=None, help="Path to config YAML (default: changelog.yml)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("sources", help="List registered sources")
    crawl = sub.add_parser("crawl", help="Crawl sources now")
    crawl.add_argument("source_ids", nargs="+", help='Source ids, or "all"')
    show = sub.add_parser("show", help="Show stored updates of a source")
    show.add_argument("source_id")
    show.add_argument("-n", "--limit", type=int, default=10)
    sub.add_parser("status", help="Data age per source")
    runs = sub.add_parser("runs", help="Recent crawl runs")
    runs.add_argument("-n", "--limit", type=int, default=10)

    args = parser.parse_args()
    if not args.command:
        print(__doc__)
        return 0

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    )

    try:
        service = ChangelogService(load_config(args.config))
        store = service.store

        if args.command == "sources":
            return cmd_sources(service)
        elif args.command == "crawl":
            return await cmd_crawl(service, args.source_ids)
        elif args.command == "show":
            return await cmd_show(store, args.source_id, args.limit)
        elif args.command == "status":
            return await cmd_status(store)
        elif args.command == "runs":
            return await cmd_runs(store, args.limit)
    except UnknownSourceError as e:
        print(f"{Colors.RED}❌ {e}. Available: {', '.join(e.available)}{Colors.END}")
        return 2
    except ChangelogError as e:
        print(f"{Colors.RED}❌ {e}{Colors.END}")
        return 1
    return 0


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print(f"\n{Colors.YELLOW}Interrupted{Colors.END}")
        sys.exit(130)
