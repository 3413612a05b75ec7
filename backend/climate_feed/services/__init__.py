"""
Services layer for the Climate Feed Monitor.

1. Ingestion (ingestion/):
   - Retrying feed fetches with per-endpoint health tracking
   - Normalization, classification and in-batch deduplication
   - Orchestrated runs on an interval schedule

2. Storage (storage.py):
   - Idempotent article inserts and filtered queries
   - Persisted feed attempts and aggregated feed health
"""

from climate_feed.services.storage import ArticleStore

__all__ = [
    "ArticleStore",
]
