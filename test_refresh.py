"""
Incremental refresh: probe skip, de-duplication, merge order, failure handling.
"""

from datetime import datetime, timezone

import pytest

from conftest import FIXED_NOW, HtmlRenderer
from core.adapter import SelectorAdapter, SelectorProfile
from core.models import ClassifiedUpdate, RefreshState, SourceRecord
from core.refresh import RefreshController, merge_updates
from sources.stripe import ADAPTER as STRIPE

URL = "https://acme.test/changelog"

ACME = SelectorAdapter(
    SelectorProfile(
        source_id="acme",
        display_name="Acme",
        url=URL,
        entry_selector="article",
        title_selector="h2",
        date_selector="time",
        description_selector="p",
    )
)


def page(*entries):
    articles = "".join(
        f'<article><h2>{title}</h2><time datetime="{day}"></time><p>{title} details</p></article>'
        for title, day in entries
    )
    return f"<html><body>{articles}</body></html>"


def update(title, day):
    return ClassifiedUpdate(title=title, date=day)


def existing_record(*entries):
    return SourceRecord(
        competitor="acme",
        updates=[update(t, d) for t, d in entries],
        last_scraped=datetime(2024, 1, 2, tzinfo=timezone.utc),
    )


@pytest.fixture
def controller(fast_policy, clock):
    return RefreshController(policy=fast_policy, clock=clock)


# ---- #


def test_merge_updates_prepends_unknown_titles():
    existing = [update("Launch v2", "2024-01-01")]
    found = [
        update("New dashboard", "2024-02-01"),
        update(" Launch v2 ", "2024-01-05"),
        update("Dark mode", "2024-01-20"),
        update("New dashboard", "2024-02-02"),
    ]
    merged, added = merge_updates(existing, found)

    assert [u.title for u in merged] == ["New dashboard", "Dark mode", "Launch v2"]
    assert added == 2


def test_merge_is_case_sensitive():
    merged, added = merge_updates([update("Dark Mode", "2024-01-01")], [update("dark mode", "2024-01-01")])
    assert added == 1
    assert len(merged) == 2


@pytest.mark.asyncio
async def test_first_crawl_goes_straight_to_full_extract(controller):
    renderer = HtmlRenderer({URL: page(("New dashboard", "2024-02-01"), ("Launch v2", "2024-01-01"))})
    outcome = await controller.refresh(ACME, renderer, None)

    assert outcome.success
    assert outcome.state == RefreshState.FULL_CRAWL_DONE
    assert outcome.new_updates == 2
    assert outcome.record.competitor == "acme"
    assert outcome.record.last_scraped == FIXED_NOW
    assert [u.title for u in outcome.record.updates] == ["New dashboard", "Launch v2"]
    assert outcome.record.updates[0].confidence == 0.9
    assert renderer.rendered == [URL]


@pytest.mark.asyncio
async def test_new_entry_is_prepended(controller):
    existing = existing_record(("Launch v2", "2024-01-01"))
    renderer = HtmlRenderer({URL: page(("New dashboard", "2024-02-01"), ("Launch v2", "2024-01-01"))})

    outcome = await controller.refresh(ACME, renderer, existing)

    assert outcome.success
    assert outcome.state == RefreshState.FULL_CRAWL_DONE
    assert [(u.title, u.date) for u in outcome.record.updates] == [
        ("New dashboard", "2024-02-01"),
        ("Launch v2", "2024-01-01"),
    ]
    assert outcome.new_updates == 1


@pytest.mark.asyncio
async def test_matching_probe_skips_full_crawl(controller):
    existing = existing_record(("New dashboard", "2024-02-01"), ("Launch v2", "2024-01-01"))
    renderer = HtmlRenderer({URL: page(("New dashboard", "2024-02-01"), ("Something else", "2024-01-15"))})

    outcome = await controller.refresh(ACME, renderer, existing)

    assert outcome.success
    assert outcome.skipped
    assert outcome.state == RefreshState.PROBE_SKIP
    assert outcome.record.updates == existing.updates
    assert outcome.record.last_scraped == FIXED_NOW
    # the stored record itself is not mutated
    assert existing.last_scraped == datetime(2024, 1, 2, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_same_title_new_date_proceeds(controller):
    existing = existing_record(("New dashboard", "2024-02-01"))
    renderer = HtmlRenderer({URL: page(("New dashboard", "2024-02-03"))})

    outcome = await controller.refresh(ACME, renderer, existing)

    assert outcome.state == RefreshState.FULL_CRAWL_DONE
    # title already stored, nothing is added
    assert outcome.new_updates == 0
    assert outcome.record.updates == existing.updates


@pytest.mark.asyncio
async def test_empty_probe_proceeds_to_full_crawl(controller):
    existing = existing_record(("Launch v2", "2024-01-01"))
    renderer = HtmlRenderer({URL: "<html><body><p>redesigned page</p></body></html>"})

    outcome = await controller.refresh(ACME, renderer, existing)

    assert outcome.success
    assert outcome.state == RefreshState.FULL_CRAWL_DONE
    assert outcome.record.updates == existing.updates


@pytest.mark.asyncio
async def test_duplicates_within_batch_are_dropped(controller):
    renderer = HtmlRenderer({URL: page(("Dark mode", "2024-02-01"), ("Dark mode", "2024-01-01"))})
    outcome = await controller.refresh(ACME, renderer, None)

    assert [u.title for u in outcome.record.updates] == ["Dark mode"]
    assert outcome.record.updates[0].date == "2024-02-01"


@pytest.mark.asyncio
async def test_render_failure_keeps_existing_record(controller):
    existing = existing_record(("Launch v2", "2024-01-01"))
    renderer = HtmlRenderer({}, fail={URL})

    outcome = await controller.refresh(ACME, renderer, existing)

    assert not outcome.success
    assert outcome.record is existing
    assert outcome.state == RefreshState.NOT_STARTED
    assert "connection refused" in outcome.error


class ExplodingAdapter(SelectorAdapter):
    async def full_extract(self, document, policy=None):
        raise RuntimeError("selector engine crashed")


@pytest.mark.asyncio
async def test_extraction_failure_releases_render_context(controller):
    adapter = ExplodingAdapter(ACME.profile)
    renderer = HtmlRenderer({URL: page(("Dark mode", "2024-02-01"))})

    outcome = await controller.refresh(adapter, renderer, None)

    assert not outcome.success
    assert outcome.record is None
    assert outcome.state == RefreshState.PROBE_PROCEED
    assert outcome.error == "selector engine crashed"
    assert renderer.open_contexts == 0


@pytest.mark.asyncio
async def test_untagged_entries_name_the_adapter_service(controller):
    renderer = HtmlRenderer({
        URL: page(("Dark mode", "2024-02-01")),
        STRIPE.url: "<main><p>Added a new sandbox reset button for teams</p></main>",
    })
    custom = SelectorAdapter(ACME.profile.model_copy(update={"default_service": "Acme Cloud"}))

    acme = await controller.refresh(ACME, renderer, None)
    acme_custom = await controller.refresh(custom, renderer, None)
    stripe = await controller.refresh(STRIPE, renderer, None)

    assert acme.record.updates[0].metadata.affected_services == ["Acme Platform"]
    assert acme_custom.record.updates[0].metadata.affected_services == ["Acme Cloud"]
    assert stripe.record.updates[0].metadata.affected_services == ["Stripe API"]
