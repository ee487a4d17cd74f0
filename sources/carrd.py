from core.adapter import SelectorAdapter, SelectorProfile

ADAPTER = SelectorAdapter(
    SelectorProfile(
        source_id="carrd",
        display_name="Carrd",
        url="https://carrd.co/changelog",
        tags={
            "Templates": ["template"],
            "Elements": ["element"],
            "Forms": ["form"],
            "Embeds": ["embed"],
            "Responsive": ["responsive"],
            "Domains": ["domain"],
            "Publishing": ["publish"],
            "Editor": ["editor"],
            "Integrations": ["integration"],
            "Pro Features": ["pro"],
        },
        fallback_keywords=[],
    )
)
