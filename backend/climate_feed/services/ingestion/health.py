"""
Feed health tracking.

Keeps per-endpoint attempt statistics for the lifetime of the process:
counters, a running mean response time, the last few errors and the
derived success rate. The persisted equivalent lives in ArticleStore.
"""

import threading
from datetime import datetime, timezone
from typing import Optional

from climate_feed.models.domain import FeedEndpointHealth, FeedError, UnhealthyFeed

MAX_RECENT_ERRORS = 3
MAX_ARTICLE_COUNT_HISTORY = 50


def error_message(error: Optional[BaseException | str]) -> str:
    if error is None:
        return "Unknown error"
    if isinstance(error, str):
        return error
    return str(error) or error.__class__.__name__


def apply_attempt(
    record: FeedEndpointHealth,
    success: bool,
    response_time_ms: float,
    article_count: int,
    error: Optional[BaseException | str] = None,
    now: Optional[datetime] = None,
) -> FeedEndpointHealth:
    """Fold one attempt into a health record (mutates and returns it)."""
    now = now or datetime.now(timezone.utc)

    record.total_attempts += 1
    if success:
        record.successful_attempts += 1
        record.last_successful_at = now
        record.article_counts.append(article_count)
        del record.article_counts[:-MAX_ARTICLE_COUNT_HISTORY]
    else:
        record.failed_attempts += 1
        record.recent_errors.append(FeedError(timestamp=now, message=error_message(error)))
        del record.recent_errors[:-MAX_RECENT_ERRORS]

    n = record.total_attempts
    record.average_response_time_ms = (
        record.average_response_time_ms * (n - 1) + response_time_ms
    ) / n
    record.last_checked_at = now
    record.success_rate_percent = record.successful_attempts / n * 100
    return record


class FeedHealthTracker:
    """
    In-memory health records keyed by feed URL.

    Safe to call from several fetch workers; readers get deep copies,
    never the live records.
    """

    def __init__(self):
        self._records: dict[str, FeedEndpointHealth] = {}
        self._lock = threading.Lock()

    def record_attempt(
        self,
        feed_url: str,
        success: bool,
        response_time_ms: float,
        article_count: int,
        error: Optional[BaseException | str] = None,
    ) -> FeedEndpointHealth:
        """Record one fetch attempt and return a snapshot of the updated record."""
        with self._lock:
            record = self._records.get(feed_url)
            if record is None:
                record = FeedEndpointHealth(url=feed_url)
                self._records[feed_url] = record
            apply_attempt(record, success, response_time_ms, article_count, error)
            return record.model_copy(deep=True)

    def get_feed_health(self, feed_url: str) -> Optional[FeedEndpointHealth]:
        with self._lock:
            record = self._records.get(feed_url)
            return record.model_copy(deep=True) if record else None

    def get_all_feeds_health(self) -> dict[str, FeedEndpointHealth]:
        """Snapshot of every known feed."""
        with self._lock:
            return {url: r.model_copy(deep=True) for url, r in self._records.items()}

    def get_unhealthy_feeds(self, threshold_percent: float = 70.0) -> list[UnhealthyFeed]:
        """Feeds whose success rate is strictly below the threshold."""
        with self._lock:
            return [
                UnhealthyFeed(
                    url=url,
                    success_rate_percent=round(r.success_rate_percent, 2),
                    last_successful_at=r.last_successful_at,
                    recent_errors=[e.model_copy() for e in r.recent_errors[-MAX_RECENT_ERRORS:]],
                )
                for url, r in self._records.items()
                if r.success_rate_percent < threshold_percent
            ]

    def reset(self) -> None:
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


# Global tracker instance
_global_tracker: Optional[FeedHealthTracker] = None


def get_health_tracker() -> FeedHealthTracker:
    """Get the process-wide health tracker."""
    global _global_tracker
    if _global_tracker is None:
        _global_tracker = FeedHealthTracker()
    return _global_tracker
