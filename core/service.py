"""
Changelog service: the one object the API, the batch job and the CLI share.

It owns the store, builds a renderer per orchestrator run and serialises
crawls with an ``asyncio.Lock`` so only one run touches the store at a time.
Trigger responses are cached. When a crawl fails, the last persisted record is
served first; a stale cache entry is used only for sources never persisted.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from . import registry
from .cache import ResponseCache, cache_key
from .config import RadarConfig
from .crawl_orchestrator import CrawlOrchestrator
from .infra import build_renderer
from .infra.store import JsonRecordStore
from .interfaces import RecordStore, Renderer
from .models import ApiResponse, CrawlReport, RunLogEntry, SourceRecord
from .refresh import RefreshController

logger = logging.getLogger(__name__)


class ChangelogService:
    def __init__(
        self,
        config: Optional[RadarConfig] = None,
        *,
        store: Optional[RecordStore] = None,
        renderer_factory: Optional[Callable[[], Renderer]] = None,
        controller: Optional[RefreshController] = None,
    ):
        self.config = config or RadarConfig()
        self.store = store or JsonRecordStore(self.config.data_dir, self.config.run_log_limit)
        self.renderer_factory = renderer_factory or (lambda: build_renderer(self.config.renderer))
        self.controller = controller or RefreshController(policy=self.config.load_more)
        self.cache: ResponseCache = ResponseCache(ttl=self.config.cache_ttl_seconds)
        self._lock = asyncio.Lock()

        if self.config.custom_sources:
            registry.register_profiles(self.config.custom_sources)

    # ---------------------------------------------- #
    # Reads

    async def read_all(self) -> List[SourceRecord]:
        return await self.store.retrieve_all()

    def list_sources(self) -> List[Dict[str, Any]]:
        allowed = set(self.config.allow_list)
        return [
            {
                "id": source_id,
                "name": adapter.display_name,
                "url": adapter.url,
                "daily": source_id in allowed,
            }
            for source_id, adapter in registry.list_available().items()
        ]

    async def list_runs(self) -> List[RunLogEntry]:
        return await self.store.list_runs()

    # ---------------------------------------------- #
    # Crawls

    async def crawl(self, source_ids: Optional[Sequence[str]] = None) -> CrawlReport:
        """Run the orchestrator over ``source_ids`` (all registered when None).

        Raises :class:`~core.errors.UnknownSourceError` before crawling anything
        if an id is not registered.
        """
        adapters = registry.select(source_ids)
        if self._lock.locked():
            logger.info("Another crawl is running, waiting for it to finish")
        async with self._lock:
            orchestrator = CrawlOrchestrator(
                self.store,
                self.renderer_factory(),
                self.controller,
                cooldown=self.config.cooldown_seconds,
                source_timeout=self.config.source_timeout_seconds,
            )
            report = await orchestrator.run(adapters)

        # single-source entries follow the store, whoever triggered the crawl
        for source_id, record in report.records.items():
            self.cache.put(cache_key([source_id]), record.to_json_dict())
        return report

    async def refresh_one(self, source_id: str, *, force: bool = False) -> ApiResponse:
        adapter = registry.get(source_id)
        key = cache_key([adapter.source_id])

        if not force:
            entry = self.cache.get_fresh(key)
            if entry is not None:
                logger.debug(f"Serving {adapter.source_id} from response cache")
                return ApiResponse(success=True, data=entry.value, from_cache=True)

        report = await self.crawl([adapter.source_id])
        record = report.records.get(adapter.source_id)
        if record is not None:
            return ApiResponse(success=True, data=record.to_json_dict())

        error = report.sources[0].error if report.sources else "refresh failed"

        persisted = await self.store.retrieve(adapter.source_id)
        if persisted is not None:
            logger.warning(f"{adapter.source_id}: crawl failed, serving last stored record")
            return ApiResponse(success=True, data=persisted.to_json_dict(), from_cache=True, error=error)

        stale = self.cache.get(key)
        if stale is not None:
            logger.warning(f"{adapter.source_id}: crawl failed, serving stale cached response")
            return ApiResponse(success=True, data=stale.value, from_cache=True, error=error)

        return ApiResponse(success=False, error=error)

    async def refresh_many(self, source_ids: Sequence[str], *, force: bool = False) -> ApiResponse:
        """Refresh a list of sources; failed ones are left out of ``data``."""
        adapters = registry.select(source_ids)
        ids = [a.source_id for a in adapters]
        key = cache_key(ids)

        if not force:
            entry = self.cache.get_fresh(key)
            if entry is not None:
                return ApiResponse(success=True, data=entry.value, from_cache=True)

        report = await self.crawl(ids)
        data = [report.records[s].to_json_dict() for s in ids if s in report.records]
        failed = [r.source for r in report.sources if not r.success]
        error = f"Failed sources: {', '.join(failed)}" if failed else None

        if report.all_failed:
            persisted = await self._persisted(ids)
            if persisted:
                logger.warning(f"All {len(ids)} sources failed, serving {len(persisted)} stored records")
                return ApiResponse(success=True, data=persisted, from_cache=True, error=error)
            return ApiResponse(success=False, data=[], error=error)

        self.cache.put(key, data)
        return ApiResponse(success=True, data=data, error=error)

    async def _persisted(self, source_ids: Sequence[str]) -> List[Dict[str, Any]]:
        records = []
        for source_id in source_ids:
            record = await self.store.retrieve(source_id)
            if record is not None:
                records.append(record.to_json_dict())
        return records

    async def refresh_all(self, *, force: bool = False) -> ApiResponse:
        return await self.refresh_many(list(registry.list_available()), force=force)

    # ---------------------------------------------- #
    # Batch

    async def run_daily(self, source_ids: Optional[Sequence[str]] = None) -> CrawlReport:
        """Crawl the allow-list (or ``source_ids``) and append to the run log."""
        ids = list(source_ids) if source_ids else self.config.allow_list
        report = await self.crawl(ids)
        await self.store.append_run(RunLogEntry.from_report(report))
        return report
