"""
Shared fixtures and fakes for the test suite.
"""

from datetime import datetime, timezone
from typing import Optional, Union

import pytest

from climate_feed.core.errors import FeedFetchError
from climate_feed.models.domain import Article, ContentCategory, FeedItem, ParsedFeed
from climate_feed.services.ingestion.base import BaseFeedParser

Outcome = Union[ParsedFeed, Exception]


class ScriptedParser(BaseFeedParser):
    """Returns (or raises) pre-scripted outcomes per URL, in order."""

    def __init__(self, outcomes: dict[str, list[Outcome]]):
        self.outcomes = {url: list(seq) for url, seq in outcomes.items()}
        self.calls: list[str] = []

    async def parse_feed(self, url: str) -> ParsedFeed:
        self.calls.append(url)
        script = self.outcomes.get(url)
        if not script:
            raise FeedFetchError(url, "no scripted response")
        outcome = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested durations."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class MemoryStore:
    """In-memory persistence collaborator."""

    def __init__(self, fail_inserts: bool = False, fail_attempts: bool = False):
        self.fail_inserts = fail_inserts
        self.fail_attempts = fail_attempts
        self.attempts: list[tuple] = []
        self.articles: dict[tuple[str, str], Article] = {}

    async def record_feed_attempt(self, url, success, response_time_ms, article_count, error=None):
        if self.fail_attempts:
            raise ConnectionError("database unavailable")
        self.attempts.append((url, success, response_time_ms, article_count, error))

    async def insert_article_if_absent(self, article: Article) -> bool:
        if self.fail_inserts:
            raise ConnectionError("database unavailable")
        key = (article.url, article.title)
        if key in self.articles:
            return False
        self.articles[key] = article
        return True


def make_feed(url: str, *items: FeedItem) -> ParsedFeed:
    return ParsedFeed(url=url, items=list(items))


def make_article(
    title: str = "Sample article",
    date: Optional[datetime] = None,
    source: str = "NASA",
    summary: str = "Summary",
    url: Optional[str] = None,
    content_category: ContentCategory = ContentCategory.SCIENCE_OTHER,
) -> Article:
    return Article(
        title=title,
        source=source,
        source_url="https://example.org/feed.xml",
        category="Satellite Data",
        content_category=content_category,
        date=date or datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc),
        summary=summary,
        url=url or f"https://example.org/{title.lower().replace(' ', '-')}",
        publisher=source,
    )


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()
