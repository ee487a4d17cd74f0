"""Infrastructure: renderers, HTTP client, JSON record store, scheduler."""

from ..config import RendererSettings
from ..interfaces import Renderer


def build_renderer(settings: RendererSettings) -> Renderer:
    """Renderer for the configured ``kind``; Playwright is imported lazily."""
    if settings.kind == "static":
        from .html import StaticRenderer

        return StaticRenderer(timeout=settings.timeout_ms / 1000)

    from .browser import PlaywrightRenderer

    return PlaywrightRenderer(
        headless=settings.headless,
        timeout_ms=settings.timeout_ms,
        settle_seconds=settings.settle_seconds,
        stealth=settings.stealth,
    )
