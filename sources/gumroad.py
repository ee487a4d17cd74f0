"""Gumroad blog; only posts that read like product updates count."""

from core.adapter import SelectorAdapter, SelectorProfile

ADAPTER = SelectorAdapter(
    SelectorProfile(
        source_id="gumroad",
        display_name="Gumroad",
        url="https://gumroad.com/blog",
        entry_selector="article, .blog-post, .post, [data-post]",
        title_selector="h1, h2, h3, .title, .post-title",
        date_selector=".date, time, .published-date",
        description_selector=".excerpt, .description, p",
        require_keywords=["update", "feature", "new", "launch", "improvement", "change"],
        tags={
            "Creator Tools": ["creator"],
            "Payments": ["payment"],
            "Analytics": ["analytics"],
            "Marketing": ["marketing"],
            "Affiliates": ["affiliate"],
            "Checkout": ["checkout"],
            "Storefront": ["storefront"],
            "Mobile": ["mobile"],
            "API": ["api"],
            "Integrations": ["integration"],
        },
        fallback_keywords=[],
    )
)
