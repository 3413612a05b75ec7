"""
Durable storage for articles and feed attempts.

Write paths are used by the ingestion pipeline; read paths back the API.
Timestamps are stored as naive UTC and handed back timezone-aware.
"""

from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import func, or_, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from climate_feed.models.database import Database, DBArticle, DBFeedAttempt, DBFeedHealth
from climate_feed.models.domain import (
    Article,
    ArticleFilters,
    ContentCategory,
    FeedEndpointHealth,
    FeedError,
    UnhealthyFeed,
)
from climate_feed.services.ingestion.health import MAX_RECENT_ERRORS, apply_attempt

logger = structlog.get_logger(__name__)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def from_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def article_from_row(row: DBArticle) -> Article:
    return Article(
        id=row.id,
        title=row.title,
        source=row.source,
        source_url=row.source_url,
        category=row.category,
        content_category=ContentCategory(row.content_category),
        date=from_naive_utc(row.publication_date),
        summary=row.summary,
        url=row.url,
        publisher=row.publisher,
        is_important=row.is_important,
    )


class ArticleStore:
    """SQLAlchemy-backed implementation of the pipeline's persistence interface."""

    def __init__(self, database: Database):
        self.database = database

    async def test_connection(self) -> bool:
        try:
            async with self.database.async_session() as session:
                await session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error("Database connection failed", error=str(e))
            return False

    # -------------------------------------------------------------------------
    # Write paths
    # -------------------------------------------------------------------------

    async def record_feed_attempt(
        self,
        url: str,
        success: bool,
        response_time_ms: float,
        article_count: int,
        error: Optional[str] = None,
    ) -> None:
        """Store an attempt and fold it into the persisted health record."""
        now = datetime.now(timezone.utc)

        async with self.database.async_session() as session:
            session.add(DBFeedAttempt(
                feed_url=url,
                success=success,
                response_time_ms=response_time_ms,
                article_count=article_count,
                error_message=None if success else (error or "Unknown error"),
                attempted_at=to_naive_utc(now),
            ))

            row = await session.get(DBFeedHealth, url)
            if row is None:
                row = DBFeedHealth(
                    feed_url=url,
                    total_attempts=0,
                    successful_attempts=0,
                    failed_attempts=0,
                    average_response_time_ms=0.0,
                    success_rate_percent=0.0,
                )
                session.add(row)

            health = apply_attempt(
                self._health_from_row(row),
                success,
                response_time_ms,
                article_count,
                error,
                now=now,
            )
            row.total_attempts = health.total_attempts
            row.successful_attempts = health.successful_attempts
            row.failed_attempts = health.failed_attempts
            row.last_successful_at = (
                to_naive_utc(health.last_successful_at) if health.last_successful_at else None
            )
            row.last_checked_at = to_naive_utc(health.last_checked_at)
            row.average_response_time_ms = health.average_response_time_ms
            row.success_rate_percent = health.success_rate_percent

            await session.commit()

    async def insert_article_if_absent(self, article: Article) -> bool:
        """Insert unless an article with the same (url, title) exists; True if inserted."""
        async with self.database.async_session() as session:
            result = await session.execute(
                select(DBArticle.id).where(
                    DBArticle.url == article.url,
                    DBArticle.title == article.title,
                )
            )
            if result.scalar_one_or_none() is not None:
                return False

            session.add(DBArticle(
                title=article.title,
                source=article.source,
                source_url=article.source_url,
                category=article.category,
                content_category=article.content_category.value,
                publication_date=to_naive_utc(article.date),
                summary=article.summary,
                url=article.url,
                publisher=article.publisher,
                is_important=article.is_important,
            ))
            try:
                await session.commit()
            except IntegrityError:
                # Inserted concurrently by another writer
                await session.rollback()
                return False
            return True

    async def set_article_important(self, article_id: int, important: bool) -> Optional[Article]:
        async with self.database.async_session() as session:
            row = await session.get(DBArticle, article_id)
            if row is None:
                return None
            row.is_important = important
            await session.commit()
            return article_from_row(row)

    # -------------------------------------------------------------------------
    # Read paths
    # -------------------------------------------------------------------------

    async def get_articles(self, filters: Optional[ArticleFilters] = None) -> list[Article]:
        """Stored articles matching the filters, newest first."""
        filters = filters or ArticleFilters()
        query = select(DBArticle)

        if filters.content_category and filters.content_category != "all":
            query = query.where(DBArticle.content_category == filters.content_category)
        if filters.source:
            query = query.where(DBArticle.source == filters.source)
        if filters.start_date:
            query = query.where(DBArticle.publication_date >= to_naive_utc(filters.start_date))
        if filters.end_date:
            query = query.where(DBArticle.publication_date <= to_naive_utc(filters.end_date))
        if filters.search:
            query = query.where(or_(
                DBArticle.title.icontains(filters.search, autoescape=True),
                DBArticle.summary.icontains(filters.search, autoescape=True),
            ))
        if filters.important_only:
            query = query.where(DBArticle.is_important.is_(True))

        query = query.order_by(DBArticle.publication_date.desc(), DBArticle.id.desc())
        if filters.limit:
            query = query.limit(filters.limit)

        async with self.database.async_session() as session:
            result = await session.execute(query)
            return [article_from_row(row) for row in result.scalars().all()]

    async def get_article_counts_by_category(self) -> dict[str, int]:
        counts = {category.value: 0 for category in ContentCategory}
        async with self.database.async_session() as session:
            result = await session.execute(
                select(DBArticle.content_category, func.count(DBArticle.id))
                .group_by(DBArticle.content_category)
            )
            for category, count in result.all():
                counts[category] = count
        return counts

    async def get_all_feeds_health(self) -> dict[str, FeedEndpointHealth]:
        async with self.database.async_session() as session:
            result = await session.execute(select(DBFeedHealth).order_by(DBFeedHealth.feed_url))
            rows = result.scalars().all()

            health = {}
            for row in rows:
                record = self._health_from_row(row)
                record.recent_errors = await self._recent_errors(session, row.feed_url)
                health[row.feed_url] = record
            return health

    async def get_unhealthy_feeds(self, threshold_percent: float = 70.0) -> list[UnhealthyFeed]:
        async with self.database.async_session() as session:
            result = await session.execute(
                select(DBFeedHealth)
                .where(DBFeedHealth.success_rate_percent < threshold_percent)
                .order_by(DBFeedHealth.success_rate_percent)
            )
            return [
                UnhealthyFeed(
                    url=row.feed_url,
                    success_rate_percent=round(row.success_rate_percent, 2),
                    last_successful_at=from_naive_utc(row.last_successful_at),
                    recent_errors=await self._recent_errors(session, row.feed_url),
                )
                for row in result.scalars().all()
            ]

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _health_from_row(row: DBFeedHealth) -> FeedEndpointHealth:
        return FeedEndpointHealth(
            url=row.feed_url,
            total_attempts=row.total_attempts or 0,
            successful_attempts=row.successful_attempts or 0,
            failed_attempts=row.failed_attempts or 0,
            last_successful_at=from_naive_utc(row.last_successful_at),
            last_checked_at=from_naive_utc(row.last_checked_at),
            average_response_time_ms=row.average_response_time_ms or 0.0,
            success_rate_percent=row.success_rate_percent or 0.0,
        )

    @staticmethod
    async def _recent_errors(session, feed_url: str) -> list[FeedError]:
        result = await session.execute(
            select(DBFeedAttempt)
            .where(DBFeedAttempt.feed_url == feed_url, DBFeedAttempt.success.is_(False))
            .order_by(DBFeedAttempt.attempted_at.desc(), DBFeedAttempt.id.desc())
            .limit(MAX_RECENT_ERRORS)
        )
        attempts = list(reversed(result.scalars().all()))
        return [
            FeedError(
                timestamp=from_naive_utc(a.attempted_at),
                message=a.error_message or "Unknown error",
            )
            for a in attempts
        ]
