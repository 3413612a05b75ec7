"""
Feed ingestion pipeline for the Climate Feed Monitor.

This module provides:
- Retry-aware feed fetching with per-endpoint health tracking
- Normalization of feed items into canonical articles
- Keyword/source based climate classification
- In-batch near-duplicate suppression
- The orchestrator and its interval scheduler
"""

from climate_feed.services.ingestion.base import BaseFeedParser, IngestionStore
from climate_feed.services.ingestion.classifier import ArticleClassifier
from climate_feed.services.ingestion.dedup import DeduplicationFilter, get_similarity
from climate_feed.services.ingestion.fetcher import RetryingFetcher
from climate_feed.services.ingestion.health import FeedHealthTracker, get_health_tracker
from climate_feed.services.ingestion.normalizer import normalize
from climate_feed.services.ingestion.orchestrator import (
    IngestionOrchestrator,
    create_orchestrator,
    group_by_category,
)
from climate_feed.services.ingestion.parser import HttpFeedParser, parse_document
from climate_feed.services.ingestion.scheduler import IngestionScheduler

__all__ = [
    "BaseFeedParser",
    "IngestionStore",
    "ArticleClassifier",
    "DeduplicationFilter",
    "get_similarity",
    "RetryingFetcher",
    "FeedHealthTracker",
    "get_health_tracker",
    "normalize",
    "IngestionOrchestrator",
    "create_orchestrator",
    "group_by_category",
    "HttpFeedParser",
    "parse_document",
    "IngestionScheduler",
]
