"""
Ingestion Orchestrator - drives one fetch → normalize → classify → dedupe
→ persist run over every feed endpoint in the registry.

Fetches run concurrently (bounded); their results are folded into the
batch in registry order so the outcome does not depend on which endpoint
answers first. Only one run may be in flight at a time.
"""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from functools import partial
from typing import Optional

import structlog

from climate_feed.config import Settings
from climate_feed.core.registry import FeedEndpoint, FeedRegistry, load_registry
from climate_feed.models.domain import (
    Article,
    EndpointFailure,
    GroupedArticles,
    IngestionResult,
    IngestionRunSummary,
    ParsedFeed,
    RunTrigger,
)
from climate_feed.services.ingestion.base import BaseFeedParser, IngestionStore
from climate_feed.services.ingestion.classifier import ArticleClassifier
from climate_feed.services.ingestion.dedup import DeduplicationFilter, get_similarity
from climate_feed.services.ingestion.fetcher import RetryingFetcher
from climate_feed.services.ingestion.health import FeedHealthTracker, error_message, get_health_tracker
from climate_feed.services.ingestion.normalizer import normalize
from climate_feed.services.ingestion.parser import HttpFeedParser

logger = structlog.get_logger(__name__)


def group_by_category(articles: list[Article]) -> GroupedArticles:
    """Partition articles by content category; ``all`` keeps the input order."""
    grouped = GroupedArticles(all=list(articles))
    for article in articles:
        getattr(grouped, article.content_category.value).append(article)
    return grouped


class IngestionOrchestrator:
    """
    Runs ingestion over the registry.

    Args:
        registry: Feed sources to ingest
        fetcher: Retrying fetcher (reports attempts to health tracking)
        classifier: Content classifier
        dedup_factory: Builds a fresh DeduplicationFilter for each run
        store: Optional persistence collaborator
        max_concurrent_fetches: Upper bound on in-flight endpoint fetches
    """

    def __init__(
        self,
        registry: FeedRegistry,
        fetcher: RetryingFetcher,
        classifier: ArticleClassifier,
        dedup_factory=DeduplicationFilter,
        store: Optional[IngestionStore] = None,
        max_concurrent_fetches: int = 8,
    ):
        self.registry = registry
        self.fetcher = fetcher
        self.classifier = classifier
        self.dedup_factory = dedup_factory
        self.store = store
        self.max_concurrent_fetches = max(1, max_concurrent_fetches)

        self._run_lock = asyncio.Lock()
        self._last_summary: Optional[IngestionRunSummary] = None

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    @property
    def last_summary(self) -> Optional[IngestionRunSummary]:
        return self._last_summary

    async def run(self, trigger: RunTrigger = "manual") -> IngestionResult:
        """
        Execute one ingestion run.

        Returns immediately with a ``skipped`` summary if another run is
        still in progress.
        """
        run_id = uuid.uuid4().hex[:12]
        started_at = datetime.now(timezone.utc)

        if self._run_lock.locked():
            logger.warning("Ingestion run skipped, previous run still in progress",
                           run_id=run_id, trigger=trigger)
            return IngestionResult(
                summary=IngestionRunSummary(
                    run_id=run_id,
                    trigger=trigger,
                    started_at=started_at,
                    finished_at=started_at,
                    skipped=True,
                )
            )

        async with self._run_lock:
            summary = IngestionRunSummary(run_id=run_id, trigger=trigger, started_at=started_at)
            log = logger.bind(run_id=run_id, trigger=trigger)
            log.info("Starting ingestion run", sources=len(self.registry))

            grouped = await self._execute(summary, log)

            finished_at = datetime.now(timezone.utc)
            summary.finished_at = finished_at
            summary.duration_seconds = (finished_at - started_at).total_seconds()
            self._last_summary = summary

            log.info("Ingestion run completed", summary=str(summary))
            return IngestionResult(grouped=grouped, summary=summary)

    async def _execute(self, summary: IngestionRunSummary, log) -> GroupedArticles:
        endpoints = list(self.registry.endpoints())
        summary.endpoints_total = len(endpoints)

        # Stage 1: fetch every endpoint
        feeds = await self._fetch_all(endpoints, summary, log)

        # Stage 2: normalize, classify and dedupe in registry order
        dedup = self.dedup_factory()
        now = datetime.now(timezone.utc)
        for endpoint, feed in zip(endpoints, feeds):
            if feed is None:
                continue
            self._accumulate(endpoint, feed, dedup, summary, now)
            log.debug("Processed feed", source=endpoint.source, url=endpoint.url,
                      items=len(feed.items))

        # Stage 3: newest first
        articles = sorted(dedup.batch, key=lambda a: a.date, reverse=True)

        # Stage 4: group
        grouped = group_by_category(articles)
        summary.articles_by_category = grouped.counts()

        # Stage 5: persist
        await self._persist(articles, summary, log)

        return grouped

    async def _fetch_all(
        self,
        endpoints: list[FeedEndpoint],
        summary: IngestionRunSummary,
        log,
    ) -> list[Optional[ParsedFeed]]:
        semaphore = asyncio.Semaphore(self.max_concurrent_fetches)

        async def fetch(endpoint: FeedEndpoint) -> Optional[ParsedFeed]:
            async with semaphore:
                log.debug("Fetching feed", source=endpoint.source, url=endpoint.url)
                try:
                    return await self.fetcher.fetch_with_retry(
                        endpoint.url,
                        persistence_errors=summary.persistence_errors,
                    )
                except Exception as e:
                    log.error("Feed skipped after retries", source=endpoint.source,
                              url=endpoint.url, error=error_message(e))
                    summary.endpoints_failed.append(
                        EndpointFailure(source=endpoint.source, url=endpoint.url,
                                        error=error_message(e))
                    )
                    return None

        feeds = await asyncio.gather(*(fetch(endpoint) for endpoint in endpoints))
        summary.endpoints_succeeded = sum(1 for feed in feeds if feed is not None)
        return feeds

    def _accumulate(
        self,
        endpoint: FeedEndpoint,
        feed: ParsedFeed,
        dedup: DeduplicationFilter,
        summary: IngestionRunSummary,
        now: datetime,
    ) -> None:
        for item in feed.items:
            summary.items_fetched += 1
            article = normalize(item, endpoint.source, endpoint.url, endpoint.category_label, now=now)
            article.content_category = self.classifier.classify(article)

            if dedup.admit(article):
                summary.articles_admitted += 1
            else:
                summary.duplicates_suppressed += 1

    async def _persist(
        self,
        articles: list[Article],
        summary: IngestionRunSummary,
        log,
    ) -> None:
        if self.store is None:
            return

        for article in articles:
            try:
                if await self.store.insert_article_if_absent(article):
                    summary.articles_persisted += 1
            except Exception as e:
                log.error("Failed to store article", title=article.title, url=article.url,
                          error=str(e))
                summary.persistence_errors.append(f"insert_article {article.url}: {e}")

        log.info("Articles stored", new=summary.articles_persisted, total=len(articles))


def create_orchestrator(
    settings: Settings,
    store: Optional[IngestionStore] = None,
    tracker: Optional[FeedHealthTracker] = None,
    parser: Optional[BaseFeedParser] = None,
) -> IngestionOrchestrator:
    """Wire the pipeline components from settings."""
    parser = parser or HttpFeedParser(
        timeout=settings.fetch.timeout_seconds,
        user_agent=settings.fetch.user_agent,
    )
    fetcher = RetryingFetcher(
        parser=parser,
        tracker=tracker or get_health_tracker(),
        store=store,
        max_attempts=settings.fetch.max_attempts,
        backoff_base_seconds=settings.fetch.backoff_base_seconds,
    )
    similarity = get_similarity(settings.dedup_similarity)

    return IngestionOrchestrator(
        registry=load_registry(settings.feed_registry_path),
        fetcher=fetcher,
        classifier=ArticleClassifier.from_settings(settings.classifier),
        dedup_factory=partial(
            DeduplicationFilter,
            similarity=similarity,
            threshold=settings.dedup_threshold,
            window=timedelta(hours=settings.dedup_window_hours),
        ),
        store=store,
        max_concurrent_fetches=settings.fetch.max_concurrent,
    )
