"""
Stripe API changelog.

The page is not a list of cards: every API version is an ``h3`` whose text
carries an ISO date, followed by sibling blocks of bullet text up to the next
``h2``/``h3``. Each version becomes one entry summarising its bullets, plus one
entry per bullet titled ``"<version>: <bullet>"``.
"""

import logging
import re
from typing import List, Optional, Tuple

from core.adapter import LoadMorePolicy, SelectorAdapter, SelectorProfile, SourceAdapter, load_more_content
from core.errors import RenderError
from core.interfaces import Document, Element
from core.models import ExtractionStrategy, RawUpdate

logger = logging.getLogger(__name__)

VERSION_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")
BULLET_SPLIT_RE = re.compile(r"\n|•|▪|◦|\*")
BULLET_KEYWORDS = ("add", "update", "fix", "support", "new", "improve")
MIN_BULLET_LENGTH = 20

TAGS = {
    "Connect": ["connect"],
    "Payments": ["payment"],
    "Billing": ["billing"],
    "Checkout": ["checkout"],
    "Terminal": ["terminal"],
    "Treasury": ["treasury"],
    "Radar": ["radar"],
    "Identity": ["identity"],
    "Issuing": ["issuing"],
    "Crypto": ["crypto"],
    "Webhooks": ["webhook"],
    "Tax": ["tax"],
    "Invoicing": ["invoice"],
    "API": ["api"],
}


class StripeAdapter(SourceAdapter):
    source_id = "stripe"
    display_name = "Stripe"
    url = "https://docs.stripe.com/changelog"
    tag_map = tuple(TAGS.items())
    default_service = "Stripe API"

    search_root = 'main, .content, #content, [role="main"]'

    def __init__(self):
        # loose paragraphs starting with an action verb, used when no version header matched
        self._fallback = SelectorAdapter(
            SelectorProfile(
                source_id=self.source_id,
                display_name=self.display_name,
                url=self.url,
                search_root=self.search_root,
                tags=TAGS,
                fallback_selector="p, div, span, li",
                fallback_match="startswith",
                fallback_min_length=30,
            )
        )

    async def _root(self, document: Document):
        return await document.query(self.search_root) or document

    async def _version_headers(self, document: Document) -> List[Tuple[Element, str, str]]:
        root = await self._root(document)
        headers = []
        for header in await root.query_all("h3"):
            title = await header.text()
            match = VERSION_DATE_RE.search(title)
            if match:
                headers.append((header, title, match.group(0)))
        return headers

    async def _bullets(self, header: Element) -> List[str]:
        """Bullet texts between ``header`` and the next h2/h3, in page order."""
        seen = set()
        bullets: List[str] = []

        def keep(text: str) -> None:
            text = text.strip()
            if len(text) >= MIN_BULLET_LENGTH and text not in seen:
                seen.add(text)
                bullets.append(text)

        current: Optional[Element] = await header.next_sibling()
        while current is not None and await current.tag_name() not in ("H2", "H3"):
            block = await current.text()
            if len(block) > MIN_BULLET_LENGTH:
                for part in BULLET_SPLIT_RE.split(block):
                    if len(part.strip()) > MIN_BULLET_LENGTH and any(w in part.lower() for w in BULLET_KEYWORDS):
                        keep(part)
            for item in await current.query_texts("li"):
                keep(item)
            current = await current.next_sibling()
        return bullets

    async def quick_probe(self, document: Document) -> List[RawUpdate]:
        try:
            headers = await self._version_headers(document)
        except RenderError as e:
            logger.warning(f"stripe: quick probe failed, treating as no match: {e}")
            return []
        return [
            RawUpdate(
                title=title,
                raw_date=version_date,
                raw_description=f"Stripe API version {title}",
                strategy=ExtractionStrategy.PROBE,
                section="stripe-quick-check",
            )
            for _, title, version_date in headers[: self.probe_limit]
        ]

    async def full_extract(
        self, document: Document, policy: Optional[LoadMorePolicy] = None
    ) -> List[RawUpdate]:
        await load_more_content(document, policy)

        updates: List[RawUpdate] = []
        for header, title, version_date in await self._version_headers(document):
            bullets = await self._bullets(header)
            bullet_tags = [self.domain_tags(b) for b in bullets]

            description = f"Stripe API version {title}"
            if bullets:
                description += f" with {len(bullets)} updates"
            updates.append(
                RawUpdate(
                    title=title,
                    raw_date=version_date,
                    raw_description=description,
                    section="stripe-version-release",
                    tags=[tag for tags in bullet_tags for tag in tags],
                )
            )
            for bullet, tags in zip(bullets, bullet_tags):
                updates.append(
                    RawUpdate(
                        title=f"{title}: {bullet}",
                        raw_date=version_date,
                        raw_description=bullet,
                        section="stripe-sub-update",
                        tags=tags,
                    )
                )
            logger.debug(f"stripe: {title} has {len(bullets)} sub-updates")

        logger.info(f"stripe: primary strategy found {len(updates)} entries")
        if not updates:
            updates = await self._fallback.extract_fallback(document)
        return updates


ADAPTER = StripeAdapter()
