"""
SQLAlchemy database models for the Climate Feed Monitor.
Uses SQLAlchemy 2.0 async patterns.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.ext.asyncio import AsyncAttrs, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# =============================================================================
# Base
# =============================================================================

class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all database models."""
    pass


# =============================================================================
# Articles
# =============================================================================

class DBArticle(Base):
    """Stored article. Naturally keyed on (url, title)."""
    __tablename__ = "articles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(1024), nullable=False)
    source: Mapped[str] = mapped_column(String(100), nullable=False)
    source_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    category: Mapped[str] = mapped_column(String(255), nullable=False)
    content_category: Mapped[str] = mapped_column(String(50), nullable=False)

    # Naive UTC
    publication_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    url: Mapped[str] = mapped_column(String(2048), nullable=False)
    publisher: Mapped[str] = mapped_column(String(100), nullable=False)
    is_important: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("url", "title", name="uq_articles_url_title"),
        Index("ix_articles_publication_date", "publication_date"),
        Index("ix_articles_content_category", "content_category"),
        Index("ix_articles_source_date", "source", "publication_date"),
    )


# =============================================================================
# Feed health
# =============================================================================

class DBFeedAttempt(Base):
    """One fetch attempt against a feed endpoint."""
    __tablename__ = "feed_attempts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    feed_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    response_time_ms: Mapped[float] = mapped_column(Float, nullable=False)
    article_count: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    attempted_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_feed_attempts_url_time", "feed_url", "attempted_at"),
    )


class DBFeedHealth(Base):
    """Accumulated health of a feed endpoint (persisted counterpart of the tracker)."""
    __tablename__ = "feed_health"

    feed_url: Mapped[str] = mapped_column(String(2048), primary_key=True)
    total_attempts: Mapped[int] = mapped_column(Integer, default=0)
    successful_attempts: Mapped[int] = mapped_column(Integer, default=0)
    failed_attempts: Mapped[int] = mapped_column(Integer, default=0)
    last_successful_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    last_checked_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    average_response_time_ms: Mapped[float] = mapped_column(Float, default=0.0)
    success_rate_percent: Mapped[float] = mapped_column(Float, default=0.0)


# =============================================================================
# Database Connection
# =============================================================================

class Database:
    """Owns the async engine and session factory for one database URL."""

    def __init__(self, database_url: str, echo: bool = False):
        self.url = database_url
        self.engine = create_async_engine(database_url, echo=echo)
        self.async_session = async_sessionmaker(
            self.engine,
            expire_on_commit=False,
        )

    async def create_tables(self):
        """Create all tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self):
        await self.engine.dispose()
