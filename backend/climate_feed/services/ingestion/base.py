"""
Interfaces the ingestion pipeline depends on.

The pipeline never talks to the network or the database directly: it
goes through a feed parser and a narrow persistence interface, so both
can be swapped out (e.g. in tests).
"""

from abc import ABC, abstractmethod
from typing import Optional, Protocol

from climate_feed.models.domain import Article, ParsedFeed


class BaseFeedParser(ABC):
    """
    Retrieves and parses one feed endpoint.

    Implementations raise FeedFetchError for transport problems and
    FeedParseError for malformed documents.
    """

    @abstractmethod
    async def parse_feed(self, url: str) -> ParsedFeed:
        """
        Fetch and parse a feed.

        Args:
            url: Feed endpoint URL

        Returns:
            ParsedFeed with zero or more items
        """
        pass


class IngestionStore(Protocol):
    """The persistence calls made by the pipeline."""

    async def record_feed_attempt(
        self,
        url: str,
        success: bool,
        response_time_ms: float,
        article_count: int,
        error: Optional[str] = None,
    ) -> None:
        ...

    async def insert_article_if_absent(self, article: Article) -> bool:
        ...
