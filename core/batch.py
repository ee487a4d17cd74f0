"""
Batch crawl: the daily job run from ``daily_crawl.py`` and the scheduler.
"""

import logging
from typing import Optional, Sequence

from .config import load_config
from .models import CrawlReport
from .service import ChangelogService

logger = logging.getLogger(__name__)

# Service bound by the long-running process; the scheduled job looks it up
# here because persistent job stores can only reference importable callables.
_service: Optional[ChangelogService] = None

SCHEDULED_JOB_REF = "core.batch:scheduled_crawl"


def bind_service(service: Optional[ChangelogService]) -> None:
    global _service
    _service = service


def log_summary(report: CrawlReport) -> None:
    summary = report.summary
    logger.info("=" * 50)
    logger.info(f"Crawl summary: {summary.succeeded}/{summary.total} sources succeeded")
    for source in report.sources:
        if source.success:
            detail = "unchanged" if source.skipped else f"{source.new_updates} new"
            logger.info(f"  + {source.source}: {source.update_count} updates ({detail})")
        else:
            logger.info(f"  - {source.source}: {source.error}")
    logger.info(f"Total updates: {summary.total_updates}")
    logger.info("=" * 50)


def exit_code(report: CrawlReport) -> int:
    """1 only when every source failed."""
    return 1 if report.all_failed else 0


async def run_batch(service: ChangelogService, source_ids: Optional[Sequence[str]] = None) -> int:
    """Crawl the allow-list (or ``source_ids``), record the run, return an exit code."""
    report = await service.run_daily(source_ids)
    log_summary(report)
    if report.all_failed:
        logger.error("All sources failed")
    return exit_code(report)


async def scheduled_crawl() -> None:
    """Entry point for the cron job."""
    service = _service or ChangelogService(load_config())
    logger.info("Scheduled crawl starting")
    try:
        await run_batch(service)
    except Exception as e:
        logger.error(f"Scheduled crawl failed: {e}", exc_info=True)
