"""
Static documents: a BeautifulSoup snapshot behind the :class:`Document`
interface, and a renderer that fetches pages over plain HTTP.

Static pages never grow, so scrolling is a no-op and there is nothing to
click; the load-more loop ends after its stable-height rounds.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Sequence

import aiohttp
from bs4 import BeautifulSoup, Tag

from ..errors import RenderError, RenderTimeout
from ..interfaces import Document, Element, Renderer
from .http import HttpClient

logger = logging.getLogger(__name__)


class SoupElement(Element):
    def __init__(self, tag: Tag):
        self._tag = tag

    async def text(self) -> str:
        return self._tag.get_text().strip()

    async def attribute(self, name: str) -> Optional[str]:
        value = self._tag.get(name)
        if isinstance(value, list):
            return " ".join(value)
        return value

    async def tag_name(self) -> str:
        return self._tag.name.upper()

    async def query(self, selector: str) -> Optional[Element]:
        found = self._tag.select_one(selector)
        return SoupElement(found) if found is not None else None

    async def query_all(self, selector: str) -> List[Element]:
        return [SoupElement(t) for t in self._tag.select(selector)]

    async def next_sibling(self) -> Optional[Element]:
        sibling = self._tag.find_next_sibling()
        return SoupElement(sibling) if sibling is not None else None


class SoupDocument(Document):
    """Read-only document parsed from an HTML string."""

    def __init__(self, html: str, url: str = ""):
        self.url = url
        self.soup = BeautifulSoup(html, "html.parser")

    async def query(self, selector: str) -> Optional[Element]:
        found = self.soup.select_one(selector)
        return SoupElement(found) if found is not None else None

    async def query_all(self, selector: str) -> List[Element]:
        return [SoupElement(t) for t in self.soup.select(selector)]

    async def scroll_height(self) -> int:
        return 0

    async def scroll_to(self, fraction: float = 1.0) -> None:
        return None

    async def click_first_visible(self, selectors: Sequence[str]) -> Optional[str]:
        return None


class StaticRenderer(Renderer):
    """Fetches HTML with :class:`HttpClient`; no JavaScript is executed."""

    def __init__(self, *, timeout: float = 30.0, http: Optional[HttpClient] = None):
        self.timeout = timeout
        self._http = http or HttpClient(timeout=timeout)

    async def __aenter__(self) -> "StaticRenderer":
        await self._http.__aenter__()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self._http.close()

    @asynccontextmanager
    async def render(self, url: str) -> AsyncIterator[Document]:
        try:
            html = await self._http.get_text(url)
        except asyncio.TimeoutError as e:
            raise RenderTimeout(url, f"no response within {self.timeout:.0f}s") from e
        except aiohttp.ClientError as e:
            raise RenderError(url, str(e) or type(e).__name__) from e

        logger.debug("Fetched %s (%d bytes)", url, len(html))
        yield SoupDocument(html, url=url)
