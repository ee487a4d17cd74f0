"""
HTTP API: response envelope, caching and fallbacks, request validation.
"""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient, TestServer

from conftest import FIXED_NOW, HtmlRenderer
from core import registry
from core.adapter import SelectorProfile
from core.api import create_app
from core.cache import ResponseCache
from core.config import RadarConfig
from core.models import ClassifiedUpdate, SourceRecord
from core.refresh import RefreshController
from core.service import ChangelogService

ACME_URL = "https://acme.test/changelog"
ACME2_URL = "https://acme2.test/changelog"


def profile(source_id, url):
    return SelectorProfile(
        source_id=source_id,
        display_name=source_id.title(),
        url=url,
        entry_selector="article",
        title_selector="h2",
        date_selector="time",
    )


def page(title, day="2024-02-01"):
    return f'<article><h2>{title}</h2><time datetime="{day}"></time></article>'


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture(autouse=True)
def clean_registry():
    yield
    registry.refresh_registry()


@pytest.fixture
def renderer():
    return HtmlRenderer({ACME_URL: page("New dashboard"), ACME2_URL: page("Dark mode released")})


@pytest.fixture
def cache_clock():
    return Clock(FIXED_NOW)


@pytest.fixture
def service(renderer, memory_store, fast_policy, clock, cache_clock):
    config = RadarConfig(
        allow_list=["acme", "acme2"],
        cooldown_seconds=0,
        cache_ttl_seconds=300,
        custom_sources=[profile("acme", ACME_URL), profile("acme2", ACME2_URL)],
    )
    svc = ChangelogService(
        config,
        store=memory_store,
        renderer_factory=lambda: renderer,
        controller=RefreshController(policy=fast_policy, clock=clock),
    )
    svc.cache = ResponseCache(ttl=300, clock=cache_clock)
    return svc


@pytest_asyncio.fixture
async def client(service):
    async with TestClient(TestServer(create_app(service))) as client:
        yield client


def stored_acme():
    return SourceRecord(
        competitor="acme",
        updates=[ClassifiedUpdate(title="Launch v2", date="2024-01-01")],
        last_scraped=datetime(2024, 1, 2, tzinfo=timezone.utc),
    )


# ---- #


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status == 200
    assert (await resp.json()) == {"status": "healthy"}


@pytest.mark.asyncio
async def test_data_returns_stored_records(client, memory_store):
    memory_store.records["acme"] = stored_acme()

    resp = await client.get("/api/data")
    body = await resp.json()

    assert resp.status == 200
    assert body["success"] is True
    assert body["fromCache"] is True
    assert "timestamp" in body
    assert body["data"][0]["competitor"] == "acme"
    assert body["data"][0]["lastScraped"].startswith("2024-01-02")


@pytest.mark.asyncio
async def test_scrape_single_source_is_cached(client, renderer, memory_store):
    resp = await client.get("/api/scrape", params={"source": "acme"})
    body = await resp.json()

    assert resp.status == 200
    assert body["success"] is True
    assert body["fromCache"] is False
    assert [u["title"] for u in body["data"]["updates"]] == ["New dashboard"]
    assert memory_store.writes == ["acme"]

    again = await (await client.get("/api/scrape", params={"source": "ACME"})).json()
    assert again["fromCache"] is True
    assert again["data"] == body["data"]
    assert renderer.rendered == [ACME_URL]

    forced = await (await client.get("/api/scrape", params={"source": "acme", "force": "true"})).json()
    assert forced["fromCache"] is False
    assert renderer.rendered == [ACME_URL, ACME_URL]


@pytest.mark.asyncio
async def test_failed_scrape_serves_stale_cache_when_nothing_stored(
    client, renderer, cache_clock, memory_store
):
    first = await (await client.get("/api/scrape", params={"source": "acme"})).json()
    memory_store.records.clear()

    cache_clock.now = FIXED_NOW + timedelta(minutes=10)
    renderer.fail.add(ACME_URL)
    resp = await client.get("/api/scrape", params={"source": "acme"})
    body = await resp.json()

    assert resp.status == 200
    assert body["success"] is True
    assert body["fromCache"] is True
    assert body["data"] == first["data"]
    assert "connection refused" in body["error"]


@pytest.mark.asyncio
async def test_failed_scrape_serves_persisted_record(client, renderer, memory_store):
    memory_store.records["acme"] = stored_acme()
    renderer.fail.add(ACME_URL)

    resp = await client.get("/api/scrape", params={"source": "acme"})
    body = await resp.json()

    assert resp.status == 200
    assert body["fromCache"] is True
    assert [u["title"] for u in body["data"]["updates"]] == ["Launch v2"]
    assert "connection refused" in body["error"]
    assert memory_store.writes == []


@pytest.mark.asyncio
async def test_failed_scrape_prefers_newer_stored_record(client, service, renderer, cache_clock):
    await client.get("/api/scrape", params={"source": "acme"})

    renderer.pages[ACME_URL] = page("Brand new billing", "2024-03-01") + page("New dashboard")
    await service.run_daily(["acme"])

    cache_clock.now = FIXED_NOW + timedelta(minutes=10)
    renderer.fail.add(ACME_URL)
    body = await (await client.get("/api/scrape", params={"source": "acme"})).json()

    assert body["fromCache"] is True
    assert [u["title"] for u in body["data"]["updates"]] == ["Brand new billing", "New dashboard"]
    assert "connection refused" in body["error"]


@pytest.mark.asyncio
async def test_cached_response_follows_batch_crawl(client, service, renderer):
    await client.get("/api/scrape", params={"source": "acme"})

    renderer.pages[ACME_URL] = page("Brand new billing", "2024-03-01") + page("New dashboard")
    await service.run_daily(["acme"])
    body = await (await client.get("/api/scrape", params={"source": "acme"})).json()

    assert body["fromCache"] is True
    assert [u["title"] for u in body["data"]["updates"]] == ["Brand new billing", "New dashboard"]
    assert renderer.rendered == [ACME_URL, ACME_URL]


@pytest.mark.asyncio
async def test_failed_scrape_without_fallback_is_500(client, renderer):
    renderer.fail.add(ACME_URL)

    resp = await client.get("/api/scrape", params={"source": "acme"})
    body = await resp.json()

    assert resp.status == 500
    assert body["success"] is False
    assert "connection refused" in body["error"]


@pytest.mark.asyncio
async def test_scrape_unknown_source_is_404(client, renderer):
    resp = await client.get("/api/scrape", params={"source": "nope"})
    body = await resp.json()

    assert resp.status == 404
    assert body["error"] == "No adapter registered for source: nope"
    assert renderer.rendered == []


@pytest.mark.asyncio
async def test_scrape_requires_source(client):
    resp = await client.get("/api/scrape")
    assert resp.status == 400
    assert (await resp.json())["success"] is False


@pytest.mark.asyncio
async def test_post_reports_partial_failure(client, renderer):
    renderer.fail.add(ACME2_URL)

    resp = await client.post("/api/scrape", json={"sources": ["acme", "acme2"]})
    body = await resp.json()

    assert resp.status == 200
    assert body["success"] is True
    assert [r["competitor"] for r in body["data"]] == ["acme"]
    assert body["error"] == "Failed sources: acme2"


@pytest.mark.asyncio
async def test_post_all_failed_serves_stored_records(client, renderer):
    first = await client.post("/api/scrape", json={"sources": ["acme", "acme2"]})
    assert first.status == 200

    renderer.fail.update({ACME_URL, ACME2_URL})
    resp = await client.post("/api/scrape", json={"sources": ["acme", "acme2"], "force": True})
    body = await resp.json()

    assert resp.status == 200
    assert body["success"] is True
    assert body["fromCache"] is True
    assert [r["competitor"] for r in body["data"]] == ["acme", "acme2"]
    assert body["error"] == "Failed sources: acme, acme2"


@pytest.mark.asyncio
async def test_post_all_failed_is_500(client, renderer):
    renderer.fail.update({ACME_URL, ACME2_URL})

    resp = await client.post("/api/scrape", json={"sources": ["acme", "acme2"]})
    body = await resp.json()

    assert resp.status == 500
    assert body["data"] == []


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", ["not json", '{"sources": "acme"}', '["acme"]', '{"sources": [1]}'])
async def test_post_rejects_bad_body(client, payload):
    resp = await client.post("/api/scrape", data=payload, headers={"Content-Type": "application/json"})
    assert resp.status == 400


@pytest.mark.asyncio
async def test_post_unknown_source_crawls_nothing(client, renderer):
    resp = await client.post("/api/scrape", json={"sources": ["acme", "nope"]})
    assert resp.status == 404
    assert renderer.rendered == []


@pytest.mark.asyncio
async def test_sources_listing(client):
    body = await (await client.get("/api/sources")).json()
    by_id = {s["id"]: s for s in body["data"]}

    assert by_id["acme"] == {"id": "acme", "name": "Acme", "url": ACME_URL, "daily": True}
    assert by_id["vercel"]["daily"] is False
    assert "stripe" in by_id


@pytest.mark.asyncio
async def test_runs_after_daily_crawl(client, service, renderer):
    renderer.fail.add(ACME2_URL)
    await service.run_daily()

    body = await (await client.get("/api/runs")).json()

    assert body["success"] is True
    run = body["data"][0]
    assert run["totalCompanies"] == 2
    assert run["successfulScrapes"] == 1
    assert run["failedScrapes"] == 1
    assert [c["name"] for c in run["companies"]] == ["acme", "acme2"]
