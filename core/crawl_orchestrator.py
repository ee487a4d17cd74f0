"""
Crawl orchestrator: refresh sources one after another, never concurrently.

Each source gets its stored record read, a refresh bounded by
``source_timeout``, its successful outcome persisted and a cooldown before the
next source. A failure of any kind is contained to its own source.
"""

import asyncio
import logging
import time
import traceback
from typing import Iterable, Optional

from .adapter import SourceAdapter
from .interfaces import RecordStore, Renderer
from .models import CrawlReport, RefreshState, SourceReport, utcnow
from .refresh import RefreshController

logger = logging.getLogger(__name__)


class CrawlOrchestrator:
    """Runs the refresh controller over a list of adapters."""

    def __init__(
        self,
        store: RecordStore,
        renderer: Renderer,
        controller: Optional[RefreshController] = None,
        *,
        cooldown: float = 3.0,
        source_timeout: float = 300.0,
    ):
        self.store = store
        self.renderer = renderer
        self.controller = controller or RefreshController()
        self.cooldown = cooldown
        self.source_timeout = source_timeout

    async def _run_source(self, adapter: SourceAdapter, report: CrawlReport) -> SourceReport:
        source = adapter.source_id
        started = time.monotonic()
        state = RefreshState.NOT_STARTED
        try:
            existing = await self.store.retrieve(source)
            outcome = await asyncio.wait_for(
                self.controller.refresh(adapter, self.renderer, existing),
                timeout=self.source_timeout,
            )
            state = outcome.state
            if not outcome.success:
                raise RuntimeError(outcome.error or "refresh failed")

            await self.store.store(source, outcome.record)
            report.records[source] = outcome.record
            return SourceReport(
                source=source,
                success=True,
                update_count=len(outcome.record.updates),
                new_updates=outcome.new_updates,
                duration_ms=int((time.monotonic() - started) * 1000),
                state=state,
                skipped=outcome.skipped,
            )
        except asyncio.TimeoutError:
            error = f"timed out after {self.source_timeout:.0f}s"
        except Exception as e:
            error = str(e) or type(e).__name__
            logger.debug(traceback.format_exc())

        logger.error(f"Failed to crawl {source}: {error}")
        return SourceReport(
            source=source,
            success=False,
            duration_ms=int((time.monotonic() - started) * 1000),
            state=state,
            error=error,
        )

    async def run(self, adapters: Iterable[SourceAdapter]) -> CrawlReport:
        adapters = list(adapters)
        report = CrawlReport()
        logger.info(f"Starting crawl of {len(adapters)} source(s)")

        try:
            async with self.renderer:
                for index, adapter in enumerate(adapters):
                    logger.info(f"Crawling {adapter.display_name} ({adapter.url})")
                    result = await self._run_source(adapter, report)
                    report.sources.append(result)
                    if result.success:
                        logger.info(
                            f"{adapter.source_id}: {result.update_count} updates "
                            f"({result.new_updates} new, {result.duration_ms} ms)"
                        )

                    if index < len(adapters) - 1 and self.cooldown > 0:
                        await asyncio.sleep(self.cooldown)
        except Exception as e:
            # renderer could not start (or stop); sources not reached count as failed
            logger.error(f"Renderer failure: {e}")
            done = {r.source for r in report.sources}
            for adapter in adapters:
                if adapter.source_id not in done:
                    report.sources.append(
                        SourceReport(source=adapter.source_id, success=False, error=f"renderer unavailable: {e}")
                    )

        report.finished_at = utcnow()
        summary = report.summary
        logger.info(
            f"Crawl finished: {summary.succeeded}/{summary.total} succeeded, "
            f"{summary.total_updates} updates total"
        )
        return report
