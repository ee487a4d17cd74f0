"""Notion releases page."""

from core.adapter import SelectorAdapter, SelectorProfile

ADAPTER = SelectorAdapter(
    SelectorProfile(
        source_id="notion",
        display_name="Notion",
        url="https://www.notion.so/releases",
        entry_selector=(
            "article, .release-item, [data-release], .update-card, .changelog-item, .release-note, "
            '[data-testid*="release"], [data-testid*="update"]'
        ),
        title_selector="h1, h2, h3, h4, .title, .release-title, .headline, .summary, [data-title]",
        date_selector=".date, time, .published, .timestamp, [datetime], [data-date]",
        description_selector=".description, .content, p, .excerpt, .summary, [data-description]",
        tags={
            "Database": ["database"],
            "Blocks": ["block"],
            "Templates": ["template"],
            "Formulas": ["formula"],
            "AI": ["ai"],
            "Integrations": ["integration"],
            "API": ["api"],
            "Collaboration": ["collaboration"],
            "Workspace": ["workspace"],
            "Sharing": ["sharing"],
        },
        paginate=True,
        min_primary_yield=30,
        fallback_selector="div, section, li, p, span",
        fallback_keywords=[
            "notion", "database", "block", "template", "formula", "workspace", "page",
            "update", "new", "improve",
        ],
    )
)
