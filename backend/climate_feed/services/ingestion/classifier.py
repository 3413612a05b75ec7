"""
Keyword and source based content classification.

Rules, first match wins (case-insensitive substring match on
"title summary"):
1. any primary keyword      -> climate_primary
2. any related keyword      -> climate_related
3. climate institution      -> climate_related
4. otherwise                -> science_other
"""

from typing import Iterable, Optional

from climate_feed.config import ClassifierSettings
from climate_feed.models.domain import Article, ContentCategory


class ArticleClassifier:
    """Assigns a ContentCategory from configurable keyword lists."""

    def __init__(
        self,
        primary_keywords: Iterable[str],
        related_keywords: Iterable[str],
        institutional_sources: Iterable[str],
    ):
        self.primary_keywords = frozenset(k.lower() for k in primary_keywords if k)
        self.related_keywords = frozenset(k.lower() for k in related_keywords if k)
        self.institutional_sources = frozenset(institutional_sources)

    @classmethod
    def from_settings(cls, settings: Optional[ClassifierSettings] = None) -> "ArticleClassifier":
        settings = settings or ClassifierSettings()
        return cls(
            primary_keywords=settings.primary_keywords,
            related_keywords=settings.related_keywords,
            institutional_sources=settings.institutional_sources,
        )

    def classify_text(self, title: str, summary: str, source: str) -> ContentCategory:
        text = f"{title} {summary}".lower()

        if any(keyword in text for keyword in self.primary_keywords):
            return ContentCategory.CLIMATE_PRIMARY

        if any(keyword in text for keyword in self.related_keywords):
            return ContentCategory.CLIMATE_RELATED

        if source in self.institutional_sources:
            return ContentCategory.CLIMATE_RELATED

        return ContentCategory.SCIENCE_OTHER

    def classify(self, article: Article) -> ContentCategory:
        return self.classify_text(article.title, article.summary, article.source)
