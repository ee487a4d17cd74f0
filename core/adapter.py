"""
Source adapters: turn a rendered changelog page into :class:`RawUpdate` lists.

Two shapes live side by side in the registry:

* :class:`SelectorAdapter` – generic strategy driven by a
  :class:`SelectorProfile` value (entry/title/date selectors, tag vocabulary,
  fallback keywords). Most sources are just a profile.
* Hand-written :class:`SourceAdapter` subclasses for pages whose structure
  does not fit the entry-card model (see ``sources/stripe.py``).

"No matches" is always an empty list. Navigation errors raised by the
document propagate to the refresh controller, except from :meth:`quick_probe`
which by contract never raises.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Literal, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, Field

from .classifier import keyword_tags
from .errors import RenderError
from .interfaces import Document, Element
from .models import ExtractionStrategy, RawUpdate

logger = logging.getLogger(__name__)

ACTION_VERBS: Tuple[str, ...] = ("add", "update", "fix", "new", "improve")

# Playwright-only selectors (``:has-text``) are tried like any other; static
# documents never click.
LOAD_MORE_SELECTORS: Tuple[str, ...] = (
    'button:has-text("Load More")',
    'button:has-text("Show More")',
    'button:has-text("View More")',
    'button:has-text("Load older")',
    'button:has-text("See more")',
    ".load-more",
    "[data-load-more]",
    'button[class*="load"]',
    'button[class*="more"]',
    ".show-more",
    "[data-show-more]",
    '[data-testid*="load"]',
    '[data-testid*="more"]',
    'button[aria-label*="load"]',
    'button[aria-label*="more"]',
    ".pagination-next",
    ".next-page",
    "[data-next]",
)


class LoadMorePolicy(BaseModel):
    """Bounds for the click/scroll loop run before a full extraction."""
    max_clicks: int = 5
    max_scrolls: int = 25
    stable_rounds: int = 3
    click_delay: float = 3.0
    scroll_delay: float = 2.0


async def load_more_content(document: Document, policy: Optional[LoadMorePolicy] = None) -> int:
    """Click "load more" controls, then scroll until the page stops growing.

    Terminates after ``policy.max_clicks`` clicks and ``policy.max_scrolls``
    scroll rounds at most, and stops scrolling early once the page height has
    not changed for ``policy.stable_rounds`` consecutive rounds.

    Returns the number of scroll rounds performed. Render errors here only cut
    the loading short; extraction proceeds with whatever is on the page.
    """
    policy = policy or LoadMorePolicy()
    try:
        for attempt in range(policy.max_clicks):
            clicked = await document.click_first_visible(LOAD_MORE_SELECTORS)
            if not clicked:
                break
            logger.debug("Clicked %s (attempt %d)", clicked, attempt + 1)
            await asyncio.sleep(policy.click_delay)

        attempts = 0
        unchanged = 0
        height = await document.scroll_height()
        while attempts < policy.max_scrolls:
            previous = height
            await document.scroll_to(1.0)
            await asyncio.sleep(policy.scroll_delay)
            await document.scroll_to(0.8)
            await asyncio.sleep(policy.scroll_delay / 2)
            await document.scroll_to(1.0)
            await asyncio.sleep(policy.scroll_delay)

            height = await document.scroll_height()
            attempts += 1
            if height == previous:
                unchanged += 1
                if unchanged >= policy.stable_rounds:
                    break
            else:
                unchanged = 0
    except RenderError as e:
        logger.warning("Loading more content on %s stopped early: %s", document.url, e)
        return 0

    logger.info("Loaded more content on %s after %d scroll attempts", document.url, attempts)
    return attempts


# --------------------------------------------------------------------------- #
# Adapter contract
# --------------------------------------------------------------------------- #


class SourceAdapter(ABC):
    """One tracked changelog page and its extraction heuristics."""

    source_id: str
    display_name: str
    url: str

    #: (tag, keywords) pairs; a tag applies when any keyword occurs in the text
    tag_map: Sequence[Tuple[str, Sequence[str]]] = ()
    probe_limit: int = 3

    @abstractmethod
    async def quick_probe(self, document: Document) -> List[RawUpdate]:
        """First few entries from the top of the page, primary strategy only."""

    @abstractmethod
    async def full_extract(
        self, document: Document, policy: Optional[LoadMorePolicy] = None
    ) -> List[RawUpdate]:
        """Every entry on the page, loading more content first."""

    @property
    def default_service(self) -> str:
        """``affectedServices`` of entries that matched no domain tag."""
        return f"{self.display_name} Platform"

    def domain_tags(self, text: str) -> List[str]:
        return keyword_tags(text, self.tag_map)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.source_id} {self.url}>"


# --------------------------------------------------------------------------- #
# Generic selector strategy
# --------------------------------------------------------------------------- #


class SelectorProfile(BaseModel):
    """Declarative description of an entry-card changelog page."""

    source_id: str
    display_name: str
    url: str
    search_root: Optional[str] = None
    entry_selector: str = "article, .changelog-item, [data-changelog], .update-item"
    title_selector: str = "h2, h3, .title, .changelog-title"
    date_selector: str = ".date, time, .published"
    date_attribute: str = "datetime"
    description_selector: str = ".description, .content, p"
    default_service: Optional[str] = None
    min_title_length: int = 5
    #: entry must mention one of these words to count (empty: no filter)
    require_keywords: List[str] = Field(default_factory=list)
    tags: Dict[str, List[str]] = Field(default_factory=dict)
    paginate: bool = False
    min_primary_yield: int = 0
    fallback_selector: str = "div, section, li, p"
    fallback_keywords: List[str] = Field(default_factory=lambda: list(ACTION_VERBS))
    fallback_match: Literal["contains", "startswith"] = "contains"
    fallback_min_length: int = 20
    fallback_max_length: int = 400


Queryable = Union[Document, Element]


class SelectorAdapter(SourceAdapter):
    """Adapter driven entirely by a :class:`SelectorProfile`."""

    def __init__(self, profile: SelectorProfile):
        self.profile = profile
        self.source_id = profile.source_id
        self.display_name = profile.display_name
        self.url = profile.url
        self.tag_map = tuple((tag, tuple(words)) for tag, words in profile.tags.items())

    @property
    def default_service(self) -> str:
        return self.profile.default_service or super().default_service

    async def _root(self, document: Document) -> Queryable:
        if self.profile.search_root:
            root = await document.query(self.profile.search_root)
            if root is not None:
                return root
        return document

    async def _entry(self, entry: Element, strategy: ExtractionStrategy, section: str) -> Optional[RawUpdate]:
        p = self.profile
        title_el = await entry.query(p.title_selector)
        if title_el is None:
            return None
        title = await title_el.text()
        if len(title) < p.min_title_length:
            return None

        raw_date = ""
        date_el = await entry.query(p.date_selector)
        if date_el is not None:
            raw_date = (await date_el.attribute(p.date_attribute) or "").strip() or await date_el.text()

        description = ""
        desc_el = await entry.query(p.description_selector)
        if desc_el is not None:
            description = await desc_el.text()

        text = f"{title} {description}"
        if p.require_keywords and not any(word in text.lower() for word in p.require_keywords):
            return None

        return RawUpdate(
            title=title,
            raw_date=raw_date,
            raw_description=description,
            strategy=strategy,
            section=section,
            tags=self.domain_tags(text),
        )

    async def extract_primary(
        self,
        document: Document,
        *,
        limit: Optional[int] = None,
        strategy: ExtractionStrategy = ExtractionStrategy.PRIMARY,
        section: Optional[str] = None,
    ) -> List[RawUpdate]:
        root = await self._root(document)
        entries = await root.query_all(self.profile.entry_selector)
        if limit is not None:
            entries = entries[:limit]

        section = section or f"{self.source_id}-changelog"
        updates: List[RawUpdate] = []
        for entry in entries:
            update = await self._entry(entry, strategy, section)
            if update is not None:
                updates.append(update)
        return updates

    def _qualifies(self, text: str) -> bool:
        lowered = text.lower()
        keywords = self.profile.fallback_keywords
        if self.profile.fallback_match == "startswith":
            return lowered.startswith(tuple(keywords))
        return any(word in lowered for word in keywords)

    async def extract_fallback(self, document: Document) -> List[RawUpdate]:
        p = self.profile
        root = await self._root(document)
        seen = set()
        updates: List[RawUpdate] = []
        for text in await root.query_texts(p.fallback_selector):
            if not p.fallback_min_length < len(text) <= p.fallback_max_length:
                continue
            if text in seen or not self._qualifies(text):
                continue
            seen.add(text)
            updates.append(
                RawUpdate(
                    title=text,
                    raw_date="",
                    raw_description=text,
                    strategy=ExtractionStrategy.FALLBACK,
                    section=f"{self.source_id}-fallback-entry",
                    tags=self.domain_tags(text),
                )
            )
        logger.debug("%s: fallback found %d candidate entries", self.source_id, len(updates))
        return updates

    async def quick_probe(self, document: Document) -> List[RawUpdate]:
        try:
            return await self.extract_primary(
                document,
                limit=self.probe_limit,
                strategy=ExtractionStrategy.PROBE,
                section=f"{self.source_id}-quick-check",
            )
        except RenderError as e:
            logger.warning("%s: quick probe failed, treating as no match: %s", self.source_id, e)
            return []

    async def full_extract(
        self, document: Document, policy: Optional[LoadMorePolicy] = None
    ) -> List[RawUpdate]:
        if self.profile.paginate:
            await load_more_content(document, policy)

        updates = await self.extract_primary(document)
        logger.info("%s: primary strategy found %d entries", self.source_id, len(updates))

        if len(updates) < self.profile.min_primary_yield and self.profile.fallback_keywords:
            logger.info(
                "%s: below minimum of %d, trying fallback strategy",
                self.source_id,
                self.profile.min_primary_yield,
            )
            updates.extend(await self.extract_fallback(document))
        return updates
