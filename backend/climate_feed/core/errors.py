"""
Exceptions raised by the ingestion pipeline.
"""


class IngestionError(Exception):
    """Base class for ingestion failures."""


class FeedFetchError(IngestionError):
    """Feed endpoint unreachable or returned an error status."""

    def __init__(self, url: str, message: str, status_code: int | None = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class FeedParseError(IngestionError):
    """Feed document could not be parsed as RSS or Atom."""

    def __init__(self, url: str, message: str):
        super().__init__(message)
        self.url = url


class FeedRegistryError(IngestionError):
    """Feed registry configuration is invalid."""
