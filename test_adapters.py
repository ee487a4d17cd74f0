"""
Adapter extraction against static HTML, plus the load-more loop.
"""

from typing import List, Optional

import pytest

from core.adapter import LoadMorePolicy, SelectorAdapter, SelectorProfile, load_more_content
from core.errors import RenderError
from core.infra.html import SoupDocument
from core.interfaces import Document
from core.models import ExtractionStrategy
from sources.gumroad import ADAPTER as GUMROAD
from sources.stripe import ADAPTER as STRIPE
from sources.vercel import ADAPTER as VERCEL

ACME_PROFILE = SelectorProfile(
    source_id="acme",
    display_name="Acme",
    url="https://acme.test/changelog",
    entry_selector="article",
    title_selector="h2",
    date_selector="time",
    description_selector="p",
    tags={"API": ["api"], "Dashboard": ["dashboard"]},
)

ACME_PAGE = """
<html><body>
<article><h2>New dashboard</h2><time datetime="2024-02-01">Feb 1</time><p>A fresh dashboard.</p></article>
<article><h2>Public API beta</h2><time>January 20, 2024</time><p>Try the API.</p></article>
<article><h2>Tiny</h2><p>too short a title</p></article>
<article><p>no title at all</p></article>
<article><h2>Launch v2</h2><time datetime=""></time></article>
<article><h2>Older entry</h2></article>
</body></html>
"""


# ---- #
# Generic selector strategy


@pytest.mark.asyncio
async def test_primary_extraction():
    adapter = SelectorAdapter(ACME_PROFILE)
    updates = await adapter.extract_primary(SoupDocument(ACME_PAGE))

    assert [u.title for u in updates] == ["New dashboard", "Public API beta", "Launch v2", "Older entry"]
    first = updates[0]
    assert first.raw_date == "2024-02-01"
    assert first.raw_description == "A fresh dashboard."
    assert first.tags == ["Dashboard"]
    assert first.strategy == ExtractionStrategy.PRIMARY
    assert first.section == "acme-changelog"
    # no datetime attribute: the element text is used
    assert updates[1].raw_date == "January 20, 2024"
    assert updates[1].tags == ["API"]
    # empty datetime attribute and no text
    assert updates[2].raw_date == ""


@pytest.mark.asyncio
async def test_quick_probe_is_limited():
    adapter = SelectorAdapter(ACME_PROFILE)
    probed = await adapter.quick_probe(SoupDocument(ACME_PAGE))

    # three entries examined, the "Tiny" one rejected
    assert [u.title for u in probed] == ["New dashboard", "Public API beta"]
    assert all(u.strategy == ExtractionStrategy.PROBE for u in probed)
    assert probed[0].section == "acme-quick-check"


@pytest.mark.asyncio
async def test_no_match_is_empty_not_error():
    adapter = SelectorAdapter(ACME_PROFILE)
    doc = SoupDocument("<html><body><div>Nothing to see</div></body></html>")
    assert await adapter.quick_probe(doc) == []
    assert await adapter.full_extract(doc, LoadMorePolicy(click_delay=0, scroll_delay=0)) == []


@pytest.mark.asyncio
async def test_fallback_when_below_minimum():
    profile = ACME_PROFILE.model_copy(update={"min_primary_yield": 5})
    adapter = SelectorAdapter(profile)
    page = (
        "<html><body>"
        "<p>Added dark mode to the editor today</p>"
        "<p>Added dark mode to the editor today</p>"
        "<li>Fix</li>"
        "<p>Contact sales for pricing information</p>"
        f"<p>Improved {'x' * 500}</p>"
        "</body></html>"
    )
    updates = await adapter.full_extract(SoupDocument(page))

    assert [u.title for u in updates] == ["Added dark mode to the editor today"]
    assert updates[0].strategy == ExtractionStrategy.FALLBACK
    assert updates[0].section == "acme-fallback-entry"
    assert updates[0].raw_date == ""


@pytest.mark.asyncio
async def test_vercel_profile_runs_fallback(fast_policy):
    page = """
    <main>
      <article>
        <h2>Faster builds for Next.js</h2>
        <time datetime="2024-02-01">Feb 1</time>
        <p>Deployments now reuse the build cache.</p>
      </article>
    </main>
    """
    updates = await VERCEL.full_extract(SoupDocument(page, url=VERCEL.url), fast_policy)

    primary = [u for u in updates if u.strategy == ExtractionStrategy.PRIMARY]
    fallback = [u for u in updates if u.strategy == ExtractionStrategy.FALLBACK]
    assert [u.title for u in primary] == ["Faster builds for Next.js"]
    assert set(primary[0].tags) == {"Next.js", "Deployment", "Build System"}
    assert any(u.title == "Deployments now reuse the build cache." for u in fallback)


@pytest.mark.asyncio
async def test_gumroad_requires_update_keywords(fast_policy):
    page = """
    <article><h2>Introducing a new checkout flow</h2><p>Faster payments.</p></article>
    <article><h2>Creator spotlight: Jane</h2><p>A chat with a maker.</p></article>
    """
    updates = await GUMROAD.full_extract(SoupDocument(page), fast_policy)

    assert [u.title for u in updates] == ["Introducing a new checkout flow"]
    assert updates[0].tags == ["Payments", "Checkout"]


# ---- #
# Stripe version headers

STRIPE_PAGE = """
<html><body>
<nav><h3>2020-01-01 in the nav is outside main</h3></nav>
<main>
<h2>Changelog</h2>
<h3>2024-09-30.acacia</h3>
<ul>
<li>Adds support for Terminal readers in Connect accounts</li>
<li>Updates the Billing invoice API to include tax</li>
</ul>
<p>Short</p>
<h3>2024-06-20.basil</h3>
<div>• Fixes webhook retries for payment intents •</div>
<h3>Not a version</h3>
<p>Adds something that belongs to no version at all</p>
</main>
</body></html>
"""


@pytest.mark.asyncio
async def test_stripe_versions_and_sub_updates(fast_policy):
    updates = await STRIPE.full_extract(SoupDocument(STRIPE_PAGE, url=STRIPE.url), fast_policy)

    assert [u.title for u in updates] == [
        "2024-09-30.acacia",
        "2024-09-30.acacia: Adds support for Terminal readers in Connect accounts",
        "2024-09-30.acacia: Updates the Billing invoice API to include tax",
        "2024-06-20.basil",
        "2024-06-20.basil: Fixes webhook retries for payment intents",
    ]
    version = updates[0]
    assert version.raw_date == "2024-09-30"
    assert version.section == "stripe-version-release"
    assert version.raw_description == "Stripe API version 2024-09-30.acacia with 2 updates"
    assert {"Connect", "Terminal", "Billing", "Tax", "Invoicing", "API"} <= set(version.tags)

    sub = updates[1]
    assert sub.section == "stripe-sub-update"
    assert sub.raw_date == "2024-09-30"
    assert sub.tags == ["Connect", "Terminal"]
    assert updates[4].tags == ["Payments", "Webhooks"]


@pytest.mark.asyncio
async def test_stripe_probe_reads_version_headers_only():
    probed = await STRIPE.quick_probe(SoupDocument(STRIPE_PAGE))
    assert [u.title for u in probed] == ["2024-09-30.acacia", "2024-06-20.basil"]
    assert probed[0].raw_date == "2024-09-30"
    assert probed[0].strategy == ExtractionStrategy.PROBE


@pytest.mark.asyncio
async def test_stripe_fallback_without_versions(fast_policy):
    page = """
    <main>
      <p>Added support for stablecoin payouts in Treasury</p>
      <p>Random unrelated marketing paragraph about nothing</p>
    </main>
    """
    updates = await STRIPE.full_extract(SoupDocument(page), fast_policy)

    assert [u.title for u in updates] == ["Added support for stablecoin payouts in Treasury"]
    assert updates[0].strategy == ExtractionStrategy.FALLBACK
    assert updates[0].section == "stripe-fallback-entry"
    assert updates[0].tags == ["Treasury"]


# ---- #
# Load-more loop


class GrowingDocument(Document):
    """Fake page: clickable a few times, then grows for a while and stops."""

    url = "https://growing.test"

    def __init__(self, clicks: int, heights: List[int], fail_after: Optional[int] = None):
        self.clicks_left = clicks
        self.clicked = 0
        self.heights = list(heights)
        self.height_reads = 0
        self.scrolls = 0
        self.fail_after = fail_after

    async def query(self, selector):
        return None

    async def query_all(self, selector):
        return []

    async def scroll_height(self):
        self.height_reads += 1
        if self.fail_after is not None and self.height_reads > self.fail_after:
            raise RenderError(self.url, "page crashed")
        if len(self.heights) > 1:
            return self.heights.pop(0)
        return self.heights[0]

    async def scroll_to(self, fraction=1.0):
        self.scrolls += 1

    async def click_first_visible(self, selectors):
        if self.clicks_left:
            self.clicks_left -= 1
            self.clicked += 1
            return selectors[0]
        return None


@pytest.mark.asyncio
async def test_load_more_stops_after_stable_heights(fast_policy):
    doc = GrowingDocument(clicks=2, heights=[100, 200, 300, 300])
    rounds = await load_more_content(doc, fast_policy)

    assert doc.clicked == 2
    # grows twice, then three unchanged rounds
    assert rounds == 5
    assert doc.scrolls == rounds * 3


@pytest.mark.asyncio
async def test_load_more_is_bounded():
    policy = LoadMorePolicy(max_clicks=5, max_scrolls=25, click_delay=0, scroll_delay=0)
    doc = GrowingDocument(clicks=100, heights=list(range(1, 1000)))
    rounds = await load_more_content(doc, policy)

    assert doc.clicked == 5
    assert rounds == 25


@pytest.mark.asyncio
async def test_load_more_render_error_is_not_fatal(fast_policy):
    doc = GrowingDocument(clicks=0, heights=[1, 2, 3], fail_after=2)
    assert await load_more_content(doc, fast_policy) == 0
