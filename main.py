"""
Main entry point: API server plus the daily cron crawl.

SCHEDULER_MODE=disabled runs one crawl of the allow-list and exits.
"""

import asyncio
import logging
import os
import signal
import sys

from dotenv import load_dotenv

# Add project root to PYTHONPATH so imports work when running this script directly
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from core import registry
from core.api import ApiServer
from core.batch import SCHEDULED_JOB_REF, bind_service, run_batch
from core.config import load_config
from core.infra.scheduler import Scheduler
from core.service import ChangelogService


async def main() -> int:
    """Main entry point with scheduler and API server."""
    load_dotenv()

    logging.basicConfig(
        level=logging.DEBUG if os.getenv("LOG_LEVEL", "").upper() == "DEBUG" else logging.INFO,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    )
    logger = logging.getLogger(__name__)

    config = load_config()
    service = ChangelogService(config)

    logger.info("Discovering sources...")
    available = registry.list_available()
    logger.info(f"Discovered {len(available)} sources:")
    for source_id, adapter in available.items():
        marker = "*" if source_id in config.allow_list else " "
        logger.info(f"  {marker} {source_id}: {adapter.url}")

    if config.schedule.mode == "disabled":
        logger.info("Scheduler disabled, running one crawl...")
        return await run_batch(service)

    scheduler = Scheduler(
        db_url=config.schedule.job_store_url,
        timezone=config.schedule.timezone,
        enable_persistence=config.schedule.persist_jobs,
    )
    api = ApiServer(service, host=config.api.host, port=config.api.port)
    bind_service(service)

    # Setup graceful shutdown
    stop_event = asyncio.Event()

    def signal_handler():
        logger.info("Received shutdown signal")
        stop_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        asyncio.get_running_loop().add_signal_handler(sig, signal_handler)

    try:
        await scheduler.start()
        scheduler.add_cron_job(
            SCHEDULED_JOB_REF,
            cron_expression=config.schedule.cron,
            job_id="daily_crawl",
            name="daily_crawl",
        )
        await api.start()

        await stop_event.wait()

    except Exception as e:
        logger.error(f"Error in main loop: {e}")
        return 1
    finally:
        logger.info("Shutting down...")
        await api.stop()
        await scheduler.stop()
        bind_service(None)
        logger.info("Shutdown complete")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
