from core.adapter import SelectorAdapter, SelectorProfile

ADAPTER = SelectorAdapter(
    SelectorProfile(
        source_id="supabase",
        display_name="Supabase",
        url="https://supabase.com/changelog",
        entry_selector="article, .changelog-item, [data-changelog]",
        title_selector="h2, h3, .title",
        date_selector=".date, time, [data-date]",
        description_selector=".description, p:not(.date)",
        tags={
            "Database": ["database", "postgres"],
            "Auth": ["auth"],
            "Storage": ["storage"],
            "Edge Functions": ["edge", "function"],
            "Realtime": ["realtime"],
            "Dashboard": ["dashboard"],
            "CLI": ["cli"],
            "API": ["api"],
        },
        paginate=True,
        fallback_keywords=[],
    )
)
