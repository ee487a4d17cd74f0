"""
Shared fixtures: offline renderers over static HTML and an in-memory store.
"""

import os
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from core.adapter import LoadMorePolicy
from core.errors import RenderError
from core.infra.html import SoupDocument
from core.interfaces import RecordStore, Renderer
from core.models import RunLogEntry, SourceRecord

FIXED_NOW = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


class HtmlRenderer(Renderer):
    """Serves canned HTML per URL; unknown URLs (or ``fail``) raise RenderError."""

    def __init__(self, pages: Optional[Dict[str, str]] = None, fail=()):
        self.pages = pages or {}
        self.fail = set(fail)
        self.rendered: List[str] = []
        self.open_contexts = 0
        self.entered = 0

    async def __aenter__(self):
        self.entered += 1
        return self

    @asynccontextmanager
    async def render(self, url: str):
        self.rendered.append(url)
        if url in self.fail or url not in self.pages:
            raise RenderError(url, "connection refused")
        self.open_contexts += 1
        try:
            yield SoupDocument(self.pages[url], url=url)
        finally:
            self.open_contexts -= 1


class MemoryStore(RecordStore):
    def __init__(self, records: Optional[Dict[str, SourceRecord]] = None):
        self.records = dict(records or {})
        self.runs: List[RunLogEntry] = []
        self.writes: List[str] = []

    async def store(self, source_id, record):
        self.writes.append(source_id)
        self.records[source_id] = record

    async def retrieve(self, source_id):
        return self.records.get(source_id)

    async def retrieve_all(self):
        return list(self.records.values())

    async def append_run(self, entry):
        self.runs.insert(0, entry)

    async def list_runs(self):
        return list(self.runs)


@pytest.fixture
def fast_policy():
    return LoadMorePolicy(click_delay=0, scroll_delay=0)


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def memory_store():
    return MemoryStore()
