"""Vercel changelog: entry cards, infinite scroll, keyword fallback."""

from core.adapter import SelectorAdapter, SelectorProfile

ADAPTER = SelectorAdapter(
    SelectorProfile(
        source_id="vercel",
        display_name="Vercel",
        url="https://vercel.com/changelog",
        entry_selector=(
            "article, [data-changelog-item], .changelog-entry, .update-item, .release-item, "
            '[data-testid*="changelog"], [data-testid*="release"]'
        ),
        title_selector="h1, h2, h3, h4, .title, [data-title], .headline, .summary",
        date_selector="[data-date], time, .date, .published, .timestamp, [datetime]",
        description_selector="p, .description, [data-description], .content, .excerpt, .summary",
        tags={
            "Edge Functions": ["edge"],
            "Next.js": ["next"],
            "Deployment": ["deploy"],
            "Analytics": ["analytics"],
            "Domains": ["domain"],
            "Build System": ["build"],
            "Preview": ["preview"],
        },
        paginate=True,
        min_primary_yield=20,
        fallback_keywords=[
            "deploy", "build", "edge", "function", "next.js", "preview", "update", "new", "improve",
        ],
    )
)
