from core.adapter import SelectorAdapter, SelectorProfile

ADAPTER = SelectorAdapter(
    SelectorProfile(
        source_id="caldotcom",
        display_name="Cal.com",
        url="https://cal.com/blog/category/updates",
        entry_selector="article, .blog-post, .update-post, [data-post]",
        title_selector="h1, h2, h3, .title, .post-title",
        date_selector=".date, time, .published-date",
        description_selector=".excerpt, .description, p",
        tags={
            "Booking": ["booking"],
            "Calendar": ["calendar"],
            "Scheduling": ["scheduling"],
            "Integrations": ["integration"],
            "Workflows": ["workflow"],
            "Payments": ["payment"],
            "Embed": ["embed"],
            "API": ["api"],
            "Teams": ["team"],
            "Routing": ["routing"],
        },
        fallback_keywords=[],
    )
)
