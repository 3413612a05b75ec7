#!/usr/bin/env python3
"""
CLI tool for feed ingestion.

Usage:
    # Run one ingestion pass and store the results
    python -m scripts.ingest fetch

    # Same, without touching the database, saving articles to a file
    python -m scripts.ingest fetch --no-store --output articles.json

    # Try every feed once and report health
    python -m scripts.ingest health

    # List configured sources
    python -m scripts.ingest sources

    # Run scheduler (continuous)
    python -m scripts.ingest serve --interval 6
"""

import argparse
import asyncio
import json
import sys

import structlog

from climate_feed.config import get_settings
from climate_feed.core.logging_config import configure_logging
from climate_feed.core.registry import load_registry
from climate_feed.models.database import Database
from climate_feed.services.ingestion import (
    FeedHealthTracker,
    HttpFeedParser,
    IngestionScheduler,
    RetryingFetcher,
    create_orchestrator,
)
from climate_feed.services.storage import ArticleStore

logger = structlog.get_logger(__name__)


async def open_store(database_url: str) -> tuple[Database, ArticleStore]:
    database = Database(database_url)
    await database.create_tables()
    return database, ArticleStore(database)


async def cmd_fetch(args):
    """Run one ingestion pass."""
    settings = get_settings()
    database = store = None
    if not args.no_store:
        database, store = await open_store(args.database_url or settings.database_url)

    try:
        orchestrator = create_orchestrator(settings, store=store, tracker=FeedHealthTracker())
        print(f"Fetching articles from {len(orchestrator.registry)} sources...")
        result = await orchestrator.run("cli")
    finally:
        if database is not None:
            await database.dispose()

    summary = result.summary
    print("\n" + "=" * 60)
    print("INGESTION RESULTS")
    print("=" * 60)
    print(summary)

    for failure in summary.endpoints_failed:
        print(f"  ✗ {failure.source}: {failure.url} ({failure.error})")
    for error in summary.persistence_errors:
        print(f"  ! {error}")

    print("-" * 60)
    for category, count in summary.articles_by_category.items():
        print(f"  {category}: {count}")

    if args.output:
        with open(args.output, "w") as f:
            json.dump(result.grouped.model_dump(mode="json"), f, indent=2)
        print(f"\nArticles saved to: {args.output}")

    if args.verbose:
        print("\n" + "=" * 60)
        print("SAMPLE ARTICLES")
        print("=" * 60)

        for article in result.grouped.all[:10]:
            print(f"\n[{article.source}] {article.title}")
            print(f"  URL: {article.url}")
            print(f"  Date: {article.date.isoformat()}")
            print(f"  Category: {article.content_category.value}")

    return 0 if summary.success else 1


async def cmd_health(args):
    """Attempt every feed once and report health."""
    settings = get_settings()
    registry = load_registry(settings.feed_registry_path)
    tracker = FeedHealthTracker()
    fetcher = RetryingFetcher(
        parser=HttpFeedParser(
            timeout=settings.fetch.timeout_seconds,
            user_agent=settings.fetch.user_agent,
        ),
        tracker=tracker,
        max_attempts=args.attempts,
        backoff_base_seconds=settings.fetch.backoff_base_seconds,
    )

    print("Checking feed health...")
    semaphore = asyncio.Semaphore(settings.fetch.max_concurrent)

    async def check(url: str):
        async with semaphore:
            try:
                await fetcher.fetch_with_retry(url)
            except Exception as e:
                logger.debug("Feed check failed", url=url, error=str(e))

    await asyncio.gather(*(check(e.url) for e in registry.endpoints()))

    print("\n" + "=" * 60)
    print("FEED HEALTH")
    print("=" * 60)

    for endpoint in registry.endpoints():
        health = tracker.get_feed_health(endpoint.url)
        if health is None:
            continue
        status = "✓ OK" if health.failed_attempts == 0 else "✗ FAILED"
        print(
            f"  [{endpoint.source}] {status} {health.success_rate_percent:.0f}% "
            f"{health.average_response_time_ms:.0f}ms  {endpoint.url}"
        )
        for error in health.recent_errors:
            print(f"      {error.message}")

    unhealthy = tracker.get_unhealthy_feeds(settings.unhealthy_threshold_percent)
    print("-" * 60)
    print(f"Unhealthy feeds: {len(unhealthy)}")

    return 0 if not unhealthy else 1


async def cmd_sources(args):
    """Show configured sources."""
    registry = load_registry(get_settings().feed_registry_path)

    print("\n" + "=" * 50)
    print("FEED SOURCES")
    print("=" * 50)
    print(f"Total sources: {len(registry)}")
    print()

    for source in registry.sources():
        print(f"  {source.name}")
        print(f"    Categories: {', '.join(source.categories)}")
        for url in source.urls:
            print(f"    - {url}")
        print()

    return 0


async def cmd_serve(args):
    """Run continuous scheduler."""
    settings = get_settings()
    database, store = await open_store(args.database_url or settings.database_url)
    orchestrator = create_orchestrator(settings, store=store)

    scheduler = IngestionScheduler(
        orchestrator,
        interval_hours=args.interval,
        run_on_startup=True,
    )

    print(f"Starting scheduler (fetch every {args.interval} hours)")
    print("Press Ctrl+C to stop")

    scheduler.start()
    try:
        # Keep running until interrupted
        await asyncio.Event().wait()
    except asyncio.CancelledError:
        pass
    finally:
        print("\nShutting down...")
        scheduler.shutdown()
        await database.dispose()

    return 0


def main():
    settings = get_settings()
    configure_logging(settings.log_level, "console")

    parser = argparse.ArgumentParser(
        description="Climate Feed Monitor - Feed Ingestion CLI"
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Fetch command
    fetch_parser = subparsers.add_parser("fetch", help="Run one ingestion pass")
    fetch_parser.add_argument(
        "--no-store",
        action="store_true",
        help="Do not write articles or attempts to the database"
    )
    fetch_parser.add_argument(
        "--database-url",
        help="Override DATABASE_URL"
    )
    fetch_parser.add_argument(
        "--output", "-o",
        help="Output file for grouped articles (JSON)"
    )
    fetch_parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show article previews"
    )

    # Health command
    health_parser = subparsers.add_parser("health", help="Check feed health")
    health_parser.add_argument(
        "--attempts",
        type=int,
        default=1,
        help="Attempts per feed (default: 1)"
    )

    # Sources command
    subparsers.add_parser("sources", help="List configured sources")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run continuous scheduler")
    serve_parser.add_argument(
        "--interval", "-i",
        type=float,
        default=settings.fetch_interval_hours,
        help=f"Fetch interval in hours (default: {settings.fetch_interval_hours})"
    )
    serve_parser.add_argument(
        "--database-url",
        help="Override DATABASE_URL"
    )

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    commands = {
        "fetch": cmd_fetch,
        "health": cmd_health,
        "sources": cmd_sources,
        "serve": cmd_serve,
    }
    try:
        return asyncio.run(commands[args.command](args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
