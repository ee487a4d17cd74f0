"""
Exception types shared by the crawler, the store and the API layer.
"""


class ChangelogError(Exception):
    """Base class for errors raised by the changelog crawler."""


class RenderError(ChangelogError):
    """Navigation or network failure while rendering a source page."""

    def __init__(self, url: str, message: str):
        super().__init__(f"{url}: {message}")
        self.url = url


class RenderTimeout(RenderError):
    """The render call did not complete within its timeout."""


class StoreError(ChangelogError):
    """Reading or writing the record store failed."""


class UnknownSourceError(ChangelogError, KeyError):
    """No adapter is registered under the requested source id."""

    def __init__(self, source_id: str, available=()):
        self.source_id = source_id
        self.available = list(available)
        super().__init__(f"No adapter registered for source: {source_id}")

    def __str__(self) -> str:
        # KeyError would repr() the message
        return self.args[0]
