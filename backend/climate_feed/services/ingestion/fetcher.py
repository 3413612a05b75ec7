"""
Retry-aware feed fetching.

Every attempt, successful or not, is reported to the in-memory health
tracker and (when configured) to durable storage. Failed attempts back
off linearly: base * 1, base * 2, ... seconds.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    stop_after_attempt,
    wait_incrementing,
)

from climate_feed.models.domain import ParsedFeed
from climate_feed.services.ingestion.base import BaseFeedParser, IngestionStore
from climate_feed.services.ingestion.health import FeedHealthTracker, error_message

logger = structlog.get_logger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


class RetryingFetcher:
    """
    Fetches one feed endpoint with bounded retries.

    Args:
        parser: Feed parser used for each attempt
        tracker: In-memory health tracker
        store: Optional durable store receiving every attempt
        max_attempts: Default attempt budget per call
        backoff_base_seconds: Sleep after failed attempt i is base * (i + 1)
        sleep: Awaitable sleep function (replaceable in tests)
    """

    def __init__(
        self,
        parser: BaseFeedParser,
        tracker: FeedHealthTracker,
        store: Optional[IngestionStore] = None,
        max_attempts: int = 2,
        backoff_base_seconds: float = 1.0,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.parser = parser
        self.tracker = tracker
        self.store = store
        self.max_attempts = max_attempts
        self.backoff_base_seconds = backoff_base_seconds
        self._sleep = sleep

    async def fetch_with_retry(
        self,
        url: str,
        max_attempts: Optional[int] = None,
        persistence_errors: Optional[list[str]] = None,
    ) -> ParsedFeed:
        """
        Fetch and parse a feed, retrying on any failure.

        Args:
            url: Feed endpoint URL
            max_attempts: Attempt budget (defaults to the fetcher's)
            persistence_errors: If given, failed attempt-record writes are
                appended here instead of only being logged

        Returns:
            The parsed feed from the first successful attempt

        Raises:
            The last attempt's error once the budget is exhausted.
        """
        attempts = self.max_attempts if max_attempts is None else max_attempts
        if attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_incrementing(
                start=self.backoff_base_seconds,
                increment=self.backoff_base_seconds,
            ),
            sleep=self._sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )

        async for attempt in retrying:
            with attempt:
                return await self._attempt(url, persistence_errors)

        # AsyncRetrying either returns from inside the loop or reraises
        raise RuntimeError(f"Retry loop ended without result for {url}")

    async def _attempt(
        self,
        url: str,
        persistence_errors: Optional[list[str]],
    ) -> ParsedFeed:
        start = time.perf_counter()
        try:
            feed = await self.parser.parse_feed(url)
        except Exception as e:
            elapsed_ms = (time.perf_counter() - start) * 1000
            await self._report(url, False, elapsed_ms, 0, e, persistence_errors)
            raise

        elapsed_ms = (time.perf_counter() - start) * 1000
        await self._report(url, True, elapsed_ms, len(feed.items), None, persistence_errors)
        return feed

    async def _report(
        self,
        url: str,
        success: bool,
        response_time_ms: float,
        article_count: int,
        error: Optional[BaseException],
        persistence_errors: Optional[list[str]],
    ) -> None:
        self.tracker.record_attempt(url, success, response_time_ms, article_count, error)

        if self.store is None:
            return
        try:
            await self.store.record_feed_attempt(
                url,
                success,
                response_time_ms,
                article_count,
                error_message(error) if error is not None else None,
            )
        except Exception as e:
            logger.error("Failed to persist feed attempt", url=url, error=str(e))
            if persistence_errors is not None:
                persistence_errors.append(f"record_feed_attempt {url}: {e}")

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        logger.warning(
            "Feed attempt failed, retrying",
            attempt=retry_state.attempt_number,
            sleep_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
            error=str(outcome.exception()) if outcome else None,
        )
