"""
Map raw feed items onto the canonical Article shape.
"""

from datetime import datetime, timezone
from typing import Optional

from climate_feed.models.domain import Article, ContentCategory, FeedItem

NO_TITLE = "No title available"
NO_SUMMARY = "No summary available"


def _first_text(*values: Optional[str]) -> Optional[str]:
    for value in values:
        if value and value.strip():
            return value.strip()
    return None


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def normalize(
    item: FeedItem,
    source: str,
    source_url: str,
    category_label: str,
    now: Optional[datetime] = None,
) -> Article:
    """
    Build an Article from a feed item and its source metadata.

    Missing fields fall back to placeholders, the ingestion time (for the
    date) or the feed endpoint (for the link). Content category is left
    as uncategorized for the classifier to fill in.
    """
    date = item.pub_date or now or datetime.now(timezone.utc)

    return Article(
        title=_first_text(item.title) or NO_TITLE,
        source=source,
        source_url=source_url,
        category=category_label,
        content_category=ContentCategory.UNCATEGORIZED,
        date=as_utc(date),
        summary=_first_text(item.content_snippet, item.content, item.description) or NO_SUMMARY,
        url=_first_text(item.link) or source_url,
        publisher=source,
    )
