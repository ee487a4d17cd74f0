"""
Core interfaces for the changelog crawler.

The crawler core only talks to these abstractions:

* :class:`Document` / :class:`Element` – a rendered page that can be queried,
  scrolled and clicked (Playwright page or a static BeautifulSoup snapshot).
* :class:`Renderer` – hands out one scoped document per source crawl.
* :class:`RecordStore` – key/value persistence of :class:`SourceRecord`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncContextManager, List, Optional, Sequence

from .models import RunLogEntry, SourceRecord


class Element(ABC):
    """A DOM element inside a rendered :class:`Document`."""

    @abstractmethod
    async def text(self) -> str:
        """Text content, stripped. Empty string when there is none."""

    @abstractmethod
    async def attribute(self, name: str) -> Optional[str]:
        ...

    @abstractmethod
    async def tag_name(self) -> str:
        """Upper-case tag name, e.g. ``H3``."""

    @abstractmethod
    async def query(self, selector: str) -> Optional["Element"]:
        ...

    @abstractmethod
    async def query_all(self, selector: str) -> List["Element"]:
        ...

    @abstractmethod
    async def next_sibling(self) -> Optional["Element"]:
        """Next element sibling, skipping text nodes."""

    async def query_texts(self, selector: str) -> List[str]:
        """Stripped text of every descendant matching ``selector``."""
        return [await el.text() for el in await self.query_all(selector)]


class Document(ABC):
    """A rendered, navigable page."""

    url: str

    @abstractmethod
    async def query(self, selector: str) -> Optional[Element]:
        ...

    @abstractmethod
    async def query_all(self, selector: str) -> List[Element]:
        ...

    async def query_texts(self, selector: str) -> List[str]:
        return [await el.text() for el in await self.query_all(selector)]

    @abstractmethod
    async def scroll_height(self) -> int:
        ...

    @abstractmethod
    async def scroll_to(self, fraction: float = 1.0) -> None:
        """Scroll to ``fraction`` of the current page height."""

    @abstractmethod
    async def click_first_visible(self, selectors: Sequence[str]) -> Optional[str]:
        """Click the first visible element matching any selector.

        Returns the selector that was clicked, or ``None``.
        """


class Renderer(ABC):
    """Factory for rendered documents.

    ``async with renderer:`` holds long-lived resources (a browser) for the
    duration of an orchestrator run; ``async with renderer.render(url)`` holds
    one page for one source crawl and always releases it.
    """

    async def __aenter__(self) -> "Renderer":
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None

    @abstractmethod
    def render(self, url: str) -> AsyncContextManager[Document]:
        """Navigate to ``url``; raises :class:`~core.errors.RenderError`."""


class RecordStore(ABC):
    """Persistence collaborator for per-source records and the run log."""

    @abstractmethod
    async def store(self, source_id: str, record: SourceRecord) -> None:
        ...

    @abstractmethod
    async def retrieve(self, source_id: str) -> Optional[SourceRecord]:
        ...

    @abstractmethod
    async def retrieve_all(self) -> List[SourceRecord]:
        ...

    @abstractmethod
    async def append_run(self, entry: RunLogEntry) -> None:
        ...

    @abstractmethod
    async def list_runs(self) -> List[RunLogEntry]:
        ...
