"""
Incremental refresh of a single source.

A refresh walks ``not_started -> probe_skip`` or
``not_started -> probe_proceed -> full_crawl_done``:

* no stored updates: go straight to a full crawl;
* otherwise probe the top of the page and skip the crawl when the newest
  probed entry has the same trimmed title and date as the newest stored one;
* a full crawl classifies every raw entry, drops titles already stored (or
  already seen earlier in the batch) and prepends the rest.

Any error returns the stored record untouched with ``success=False``; the
caller decides what to persist.
"""

import logging
import traceback
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Tuple

from .adapter import LoadMorePolicy, SourceAdapter
from .classifier import classify_update
from .interfaces import Renderer
from .models import (
    ClassifiedUpdate,
    RawUpdate,
    RefreshOutcome,
    RefreshState,
    SourceRecord,
    utcnow,
)

logger = logging.getLogger(__name__)


def merge_updates(
    existing: List[ClassifiedUpdate], found: Iterable[ClassifiedUpdate]
) -> Tuple[List[ClassifiedUpdate], int]:
    """Prepend the entries of ``found`` whose trimmed title is not yet known.

    Title comparison is exact (case-sensitive). The order of ``found`` is kept
    and nothing is re-sorted. Returns the merged list and the number added.
    """
    seen = {u.title.strip() for u in existing}
    fresh: List[ClassifiedUpdate] = []
    for update in found:
        key = update.title.strip()
        if key in seen:
            continue
        seen.add(key)
        fresh.append(update)
    return fresh + list(existing), len(fresh)


def same_entry(a: ClassifiedUpdate, b: ClassifiedUpdate) -> bool:
    return a.title.strip() == b.title.strip() and a.date == b.date


class RefreshController:
    """Decides per source whether a full crawl is needed and merges results."""

    def __init__(
        self,
        *,
        policy: Optional[LoadMorePolicy] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.policy = policy or LoadMorePolicy()
        self.clock = clock

    def _classify(self, adapter: SourceAdapter, raws: Iterable[RawUpdate]) -> List[ClassifiedUpdate]:
        today = self.clock().date()
        classified = []
        for raw in raws:
            update = classify_update(
                raw, url=adapter.url, default_service=adapter.default_service, today=today
            )
            if update is not None:
                classified.append(update)
        return classified

    async def refresh(
        self,
        adapter: SourceAdapter,
        renderer: Renderer,
        existing: Optional[SourceRecord] = None,
    ) -> RefreshOutcome:
        source = adapter.source_id
        state = RefreshState.NOT_STARTED
        try:
            async with renderer.render(adapter.url) as document:
                if existing is not None and existing.updates:
                    probed = self._classify(adapter, await adapter.quick_probe(document))
                    if probed and same_entry(probed[0], existing.updates[0]):
                        logger.info(f"{source}: newest entry unchanged, skipping full crawl")
                        record = existing.model_copy(
                            update={"last_scraped": self.clock(), "success": True}
                        )
                        return RefreshOutcome(
                            source=source,
                            state=RefreshState.PROBE_SKIP,
                            record=record,
                            success=True,
                        )
                    if not probed:
                        logger.info(f"{source}: quick probe found nothing, running full crawl")
                    else:
                        logger.info(f"{source}: new content detected, running full crawl")
                state = RefreshState.PROBE_PROCEED

                raws = await adapter.full_extract(document, self.policy)
        except Exception as e:
            logger.error(f"{source}: refresh failed in state {state.value}: {e}")
            logger.debug(traceback.format_exc())
            return RefreshOutcome(
                source=source,
                state=state,
                record=existing,
                success=False,
                error=str(e) or type(e).__name__,
            )

        found = self._classify(adapter, raws)
        previous = existing.updates if existing is not None else []
        merged, added = merge_updates(previous, found)
        logger.info(f"{source}: extracted {len(found)} updates, {added} new")

        return RefreshOutcome(
            source=source,
            state=RefreshState.FULL_CRAWL_DONE,
            record=SourceRecord(
                competitor=source,
                updates=merged,
                last_scraped=self.clock(),
                success=True,
            ),
            success=True,
            new_updates=added,
        )
