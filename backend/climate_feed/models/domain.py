"""
Domain models for the Climate Feed Monitor.
These are the core business entities, independent of database/API representation.
"""
from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field


# =============================================================================
# Enums
# =============================================================================

class ContentCategory(str, Enum):
    """Climate relevance of an article (distinct from the display category)."""
    CLIMATE_PRIMARY = "climate_primary"  # Directly about climate change
    CLIMATE_RELATED = "climate_related"  # Environment, weather, related topics
    SCIENCE_OTHER = "science_other"
    UNCATEGORIZED = "uncategorized"


RunTrigger = Literal["startup", "scheduled", "manual", "cli"]


# =============================================================================
# Feed items (parser output)
# =============================================================================

class FeedItem(BaseModel):
    """One item of a parsed feed; every field may be missing."""
    title: Optional[str] = None
    pub_date: Optional[datetime] = None
    content_snippet: Optional[str] = None  # Content with markup stripped
    content: Optional[str] = None
    description: Optional[str] = None
    link: Optional[str] = None


class ParsedFeed(BaseModel):
    """A parsed RSS/Atom document."""
    url: str
    title: Optional[str] = None
    items: list[FeedItem] = Field(default_factory=list)


# =============================================================================
# Articles
# =============================================================================

class Article(BaseModel):
    """Canonical article record produced by normalization."""
    id: Optional[int] = None  # Assigned by storage
    title: str
    source: str  # Registry key, e.g. "NASA"
    source_url: str  # Feed endpoint the item came from
    category: str  # First registry tag of the source
    content_category: ContentCategory = ContentCategory.UNCATEGORIZED
    date: datetime
    summary: str
    url: str
    publisher: str
    is_important: bool = False


class GroupedArticles(BaseModel):
    """Articles of one run partitioned by content category."""
    climate_primary: list[Article] = Field(default_factory=list)
    climate_related: list[Article] = Field(default_factory=list)
    science_other: list[Article] = Field(default_factory=list)
    uncategorized: list[Article] = Field(default_factory=list)
    all: list[Article] = Field(default_factory=list)

    def counts(self) -> dict[str, int]:
        return {category.value: len(getattr(self, category.value)) for category in ContentCategory}


class ArticleFilters(BaseModel):
    """Read-path filters for stored articles."""
    content_category: Optional[str] = None  # "all" or None means no filter
    source: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    search: Optional[str] = None
    important_only: bool = False
    limit: Optional[int] = Field(default=None, ge=1, le=1000)


# =============================================================================
# Feed health
# =============================================================================

class FeedError(BaseModel):
    """A failed attempt's error message."""
    timestamp: datetime
    message: str


class FeedEndpointHealth(BaseModel):
    """Accumulated attempt statistics for one feed URL."""
    url: str
    total_attempts: int = 0
    successful_attempts: int = 0
    failed_attempts: int = 0
    last_successful_at: Optional[datetime] = None
    last_checked_at: Optional[datetime] = None
    average_response_time_ms: float = 0.0
    success_rate_percent: float = 0.0
    recent_errors: list[FeedError] = Field(default_factory=list)
    article_counts: list[int] = Field(default_factory=list)


class UnhealthyFeed(BaseModel):
    """A feed whose success rate is below the health threshold."""
    url: str
    success_rate_percent: float
    last_successful_at: Optional[datetime] = None
    recent_errors: list[FeedError] = Field(default_factory=list)


# =============================================================================
# Ingestion runs
# =============================================================================

class EndpointFailure(BaseModel):
    """A feed endpoint skipped after exhausting its retries."""
    source: str
    url: str
    error: str


class IngestionRunSummary(BaseModel):
    """Outcome of one orchestration run, including partial failures."""
    run_id: str
    trigger: RunTrigger
    started_at: datetime
    finished_at: Optional[datetime] = None
    duration_seconds: float = 0.0
    skipped: bool = False
    endpoints_total: int = 0
    endpoints_succeeded: int = 0
    endpoints_failed: list[EndpointFailure] = Field(default_factory=list)
    items_fetched: int = 0
    articles_admitted: int = 0
    duplicates_suppressed: int = 0
    articles_persisted: int = 0
    persistence_errors: list[str] = Field(default_factory=list)
    articles_by_category: dict[str, int] = Field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.skipped and not self.endpoints_failed and not self.persistence_errors

    def __str__(self) -> str:
        if self.skipped:
            return f"- run {self.run_id} ({self.trigger}) skipped: another run in progress"
        status = "✓" if self.success else "✗"
        return (
            f"{status} run {self.run_id} ({self.trigger}): "
            f"endpoints={self.endpoints_succeeded}/{self.endpoints_total}, "
            f"fetched={self.items_fetched}, admitted={self.articles_admitted}, "
            f"duplicates={self.duplicates_suppressed}, persisted={self.articles_persisted}, "
            f"persistence_errors={len(self.persistence_errors)}, "
            f"time={self.duration_seconds:.1f}s"
        )


class IngestionResult(BaseModel):
    """Grouped articles plus the run summary."""
    grouped: GroupedArticles = Field(default_factory=GroupedArticles)
    summary: IngestionRunSummary
