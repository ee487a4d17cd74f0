from core.adapter import SelectorAdapter, SelectorProfile

ADAPTER = SelectorAdapter(
    SelectorProfile(
        source_id="convertkit",
        display_name="ConvertKit",
        url="https://updates.kit.com/changelog",
        tags={
            "Email": ["email"],
            "Automation": ["automation"],
            "Forms": ["form"],
            "Landing Pages": ["landing"],
            "Sequences": ["sequence"],
            "Broadcasts": ["broadcast"],
            "Subscribers": ["subscriber"],
            "Integrations": ["integration"],
            "Commerce": ["commerce"],
            "Creator Studio": ["creator"],
        },
        fallback_keywords=[],
    )
)
