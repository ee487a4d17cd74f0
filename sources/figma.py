"""Figma release notes: many card shapes, large keyword fallback."""

from core.adapter import SelectorAdapter, SelectorProfile

ADAPTER = SelectorAdapter(
    SelectorProfile(
        source_id="figma",
        display_name="Figma",
        url="https://www.figma.com/release-notes/",
        entry_selector=(
            "article, [data-release], .release-note, .update-item, .changelog-item, .release-item, "
            '[data-testid*="release"], [data-testid*="update"], .feature-update, .product-update'
        ),
        title_selector="h1, h2, h3, h4, .title, [data-title], .headline, .summary, .feature-title",
        date_selector=".date, time, [data-date], .published, .timestamp, [datetime]",
        description_selector=".description, p, .content, .excerpt, .summary, [data-description]",
        tags={
            "Design": ["design"],
            "Prototyping": ["prototype"],
            "FigJam": ["figjam"],
            "Dev Mode": ["dev mode"],
            "Figma Sites": ["sites"],
            "Figma Slides": ["slides"],
            "Figma Draw": ["draw"],
            "AI": ["ai"],
            "Collaboration": ["collaboration"],
            "Layout": ["grid"],
            "Components": ["component"],
        },
        paginate=True,
        min_primary_yield=30,
        fallback_selector="div, section, li, p, span",
        fallback_keywords=[
            "figma", "design", "prototype", "figjam", "component", "layer", "canvas",
            "update", "new", "improve",
        ],
    )
)
