from core.adapter import SelectorAdapter, SelectorProfile

ADAPTER = SelectorAdapter(
    SelectorProfile(
        source_id="linear",
        display_name="Linear",
        url="https://linear.app/changelog",
        tags={
            "Issues": ["issue"],
            "Projects": ["project"],
            "Workflows": ["workflow"],
            "Teams": ["team"],
            "Integrations": ["integration"],
            "API": ["api"],
            "Cycles": ["cycle"],
            "Roadmaps": ["roadmap"],
            "Triage": ["triage"],
            "Insights": ["insight"],
        },
        fallback_keywords=[],
    )
)
