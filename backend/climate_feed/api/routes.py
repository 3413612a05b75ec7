"""
FastAPI routes for the Climate Feed Monitor API.
"""

from datetime import datetime, timezone
from typing import Annotated, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from climate_feed.config import get_settings
from climate_feed.models.domain import ArticleFilters, ContentCategory
from climate_feed.services.ingestion.health import FeedHealthTracker, get_health_tracker
from climate_feed.services.ingestion.scheduler import IngestionScheduler
from climate_feed.services.storage import ArticleStore

logger = structlog.get_logger(__name__)
router = APIRouter()

_store: Optional[ArticleStore] = None
_scheduler: Optional[IngestionScheduler] = None


def set_store(store: ArticleStore) -> None:
    global _store
    _store = store


def set_scheduler(scheduler: IngestionScheduler) -> None:
    global _scheduler
    _scheduler = scheduler


def get_store() -> ArticleStore:
    if _store is None:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "Storage not initialized")
    return _store


def get_scheduler() -> IngestionScheduler:
    if _scheduler is None:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "Scheduler not initialized")
    return _scheduler


StoreDep = Annotated[ArticleStore, Depends(get_store)]
SchedulerDep = Annotated[IngestionScheduler, Depends(get_scheduler)]
TrackerDep = Annotated[FeedHealthTracker, Depends(get_health_tracker)]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ImportanceUpdate(BaseModel):
    is_important: bool


# ============================================================================
# Article Routes
# ============================================================================


@router.get("/articles")
async def list_articles(
    store: StoreDep,
    tracker: TrackerDep,
    content_category: Optional[str] = None,
    source: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    search: Optional[str] = None,
    important_only: bool = False,
    limit: Optional[int] = Query(default=None, ge=1, le=1000),
):
    """
    List stored articles, newest first.

    ``content_category=all`` (or omitted) returns every category.
    """
    valid = {c.value for c in ContentCategory} | {"all"}
    if content_category and content_category not in valid:
        raise HTTPException(
            422,
            f"Unknown content_category '{content_category}'",
        )

    filters = ArticleFilters(
        content_category=content_category,
        source=source,
        start_date=start_date,
        end_date=end_date,
        search=search,
        important_only=important_only,
        limit=limit,
    )
    articles = await store.get_articles(filters)
    counts = await store.get_article_counts_by_category()

    return {
        "success": True,
        "data": [a.model_dump(mode="json") for a in articles],
        "metadata": {
            "total_articles": len(articles),
            "articles_by_category": counts,
            "fetch_time": _now(),
            "feed_health": {
                url: h.model_dump(mode="json")
                for url, h in tracker.get_all_feeds_health().items()
            },
        },
    }


@router.get("/articles/counts")
async def article_counts(store: StoreDep):
    """Stored article counts per content category."""
    return {"success": True, "data": await store.get_article_counts_by_category()}


@router.patch("/articles/{article_id}/important")
async def set_article_importance(article_id: int, update: ImportanceUpdate, store: StoreDep):
    """Curation flag, set by administrators."""
    article = await store.set_article_important(article_id, update.is_important)
    if article is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Article not found")

    logger.info("Article importance updated", article_id=article_id,
                is_important=update.is_important)
    return {"success": True, "data": article.model_dump(mode="json")}


# ============================================================================
# Feed Health Routes
# ============================================================================


@router.get("/feed-health")
async def feed_health(tracker: TrackerDep, persisted: bool = False):
    """
    Health of every feed endpoint.

    By default reports this process's attempts; ``persisted=true`` reads
    the accumulated history from storage.
    """
    if persisted:
        health = await get_store().get_all_feeds_health()
    else:
        health = tracker.get_all_feeds_health()

    return {
        "success": True,
        "data": {url: h.model_dump(mode="json") for url, h in health.items()},
        "timestamp": _now(),
    }


@router.get("/unhealthy-feeds")
async def unhealthy_feeds(
    tracker: TrackerDep,
    threshold: Optional[float] = Query(default=None, ge=0, le=100),
    persisted: bool = False,
):
    """Feeds whose success rate is below the threshold (default from settings)."""
    if threshold is None:
        threshold = get_settings().unhealthy_threshold_percent

    if persisted:
        feeds = await get_store().get_unhealthy_feeds(threshold)
    else:
        feeds = tracker.get_unhealthy_feeds(threshold)

    return {
        "success": True,
        "data": [f.model_dump(mode="json") for f in feeds],
        "threshold": threshold,
        "timestamp": _now(),
    }


# ============================================================================
# Ingestion Routes
# ============================================================================


@router.get("/ingestion/status")
async def ingestion_status(scheduler: SchedulerDep):
    return {"success": True, "data": scheduler.get_status()}


@router.post("/admin/run-ingestion")
async def trigger_ingestion(scheduler: SchedulerDep):
    """Run ingestion now; reports a skipped run if one is already in progress."""
    result = await scheduler.run_now("manual")
    if result is None:
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, "Ingestion run failed")

    return {
        "success": not result.summary.skipped,
        "data": result.summary.model_dump(mode="json"),
    }
