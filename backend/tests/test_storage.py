"""
Tests for the SQLAlchemy article store, against a temporary SQLite file.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from climate_feed.models.database import Database
from climate_feed.models.domain import ArticleFilters, ContentCategory
from climate_feed.services.storage import ArticleStore

from conftest import make_article

NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)
FEED = "https://example.org/feed.xml"


@pytest.fixture
def run_with_store(tmp_path):
    """Run an async test body against a fresh store in its own event loop."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"

    def runner(body):
        async def main():
            database = Database(url)
            await database.create_tables()
            try:
                return await body(ArticleStore(database))
            finally:
                await database.dispose()

        return asyncio.run(main())

    return runner


class TestArticleStore:
    """Tests for article writes and queries."""

    def test_connection(self, run_with_store):
        async def body(store):
            return await store.test_connection()

        assert run_with_store(body) is True

    def test_insert_is_idempotent_on_url_and_title(self, run_with_store):
        async def body(store):
            article = make_article(title="Ice shelf collapse", url="https://example.org/ice")
            first = await store.insert_article_if_absent(article)
            again = await store.insert_article_if_absent(article)
            retitled = await store.insert_article_if_absent(
                article.model_copy(update={"title": "Ice shelf collapse (updated)"})
            )
            return first, again, retitled, await store.get_articles()

        first, again, retitled, stored = run_with_store(body)

        assert (first, again, retitled) == (True, False, True)
        assert len(stored) == 2
        assert all(a.id is not None for a in stored)

    def test_round_trip_preserves_fields(self, run_with_store):
        async def body(store):
            await store.insert_article_if_absent(make_article(
                title="Carbon budget",
                date=NOW,
                source="UN_Climate",
                content_category=ContentCategory.CLIMATE_PRIMARY,
            ))
            return await store.get_articles()

        (article,) = run_with_store(body)

        assert article.title == "Carbon budget"
        assert article.source == "UN_Climate"
        assert article.content_category == ContentCategory.CLIMATE_PRIMARY
        assert article.date == NOW
        assert article.date.tzinfo is not None

    def test_filters(self, run_with_store):
        async def body(store):
            for article in [
                make_article(title="Hurricane season", date=NOW, source="NOAA",
                             content_category=ContentCategory.CLIMATE_RELATED),
                make_article(title="Global warming record", date=NOW - timedelta(days=1),
                             source="NASA", content_category=ContentCategory.CLIMATE_PRIMARY),
                make_article(title="Telescope news", date=NOW - timedelta(days=5),
                             source="NASA", summary="Hubble observes a hurricane on Jupiter"),
            ]:
                await store.insert_article_if_absent(article)

            return {
                "all": await store.get_articles(ArticleFilters(content_category="all")),
                "related": await store.get_articles(
                    ArticleFilters(content_category="climate_related")),
                "nasa": await store.get_articles(ArticleFilters(source="NASA")),
                "recent": await store.get_articles(
                    ArticleFilters(start_date=NOW - timedelta(days=2))),
                "older": await store.get_articles(
                    ArticleFilters(end_date=NOW - timedelta(days=2))),
                "search": await store.get_articles(ArticleFilters(search="HURRICANE")),
                "limited": await store.get_articles(ArticleFilters(limit=1)),
            }

        results = run_with_store(body)

        def titles(key):
            return [a.title for a in results[key]]

        assert titles("all") == ["Hurricane season", "Global warming record", "Telescope news"]
        assert titles("related") == ["Hurricane season"]
        assert titles("nasa") == ["Global warming record", "Telescope news"]
        assert titles("recent") == ["Hurricane season", "Global warming record"]
        assert titles("older") == ["Telescope news"]
        assert titles("search") == ["Hurricane season", "Telescope news"]
        assert titles("limited") == ["Hurricane season"]

    def test_search_treats_wildcards_literally(self, run_with_store):
        async def body(store):
            await store.insert_article_if_absent(make_article(title="Arctic ice"))
            await store.insert_article_if_absent(make_article(title="Solar 100% renewable"))
            await store.insert_article_if_absent(make_article(title="snake_case headline"))
            return {
                term: [a.title for a in await store.get_articles(ArticleFilters(search=term))]
                for term in ("%", "_", "100%", "ARCTIC")
            }

        results = run_with_store(body)

        assert results["%"] == ["Solar 100% renewable"]
        assert results["_"] == ["snake_case headline"]
        assert results["100%"] == ["Solar 100% renewable"]
        assert results["ARCTIC"] == ["Arctic ice"]

    def test_mark_important(self, run_with_store):
        async def body(store):
            await store.insert_article_if_absent(make_article(title="Keep this"))
            await store.insert_article_if_absent(make_article(title="Ignore this"))
            (target,) = await store.get_articles(ArticleFilters(search="Keep"))

            updated = await store.set_article_important(target.id, True)
            missing = await store.set_article_important(9999, True)
            important = await store.get_articles(ArticleFilters(important_only=True))
            return updated, missing, important

        updated, missing, important = run_with_store(body)

        assert updated.is_important is True
        assert missing is None
        assert [a.title for a in important] == ["Keep this"]

    def test_counts_by_category(self, run_with_store):
        async def body(store):
            await store.insert_article_if_absent(make_article(
                title="a", content_category=ContentCategory.CLIMATE_PRIMARY))
            await store.insert_article_if_absent(make_article(
                title="b", content_category=ContentCategory.CLIMATE_PRIMARY))
            await store.insert_article_if_absent(make_article(
                title="c", content_category=ContentCategory.SCIENCE_OTHER))
            return await store.get_article_counts_by_category()

        assert run_with_store(body) == {
            "climate_primary": 2,
            "climate_related": 0,
            "science_other": 1,
            "uncategorized": 0,
        }


class TestFeedAttemptPersistence:
    """Tests for persisted feed health."""

    def test_health_aggregates(self, run_with_store):
        async def body(store):
            await store.record_feed_attempt(FEED, True, 100.0, 4)
            await store.record_feed_attempt(FEED, False, 300.0, 0, "HTTP 500")
            await store.record_feed_attempt(FEED, True, 200.0, 6)
            return await store.get_all_feeds_health()

        health = run_with_store(body)[FEED]

        assert health.total_attempts == 3
        assert health.successful_attempts == 2
        assert health.failed_attempts == 1
        assert health.average_response_time_ms == pytest.approx(200.0)
        assert health.success_rate_percent == pytest.approx(200 / 3)
        assert health.last_successful_at is not None
        assert [e.message for e in health.recent_errors] == ["HTTP 500"]

    def test_unhealthy_feeds(self, run_with_store):
        async def body(store):
            for i in range(10):
                success = i < 6
                await store.record_feed_attempt(
                    FEED, success, 50.0, 1 if success else 0,
                    None if success else f"timeout {i}",
                )
            await store.record_feed_attempt("https://healthy.example.org/rss", True, 20.0, 3)
            return await store.get_unhealthy_feeds(70)

        unhealthy = run_with_store(body)

        assert len(unhealthy) == 1
        assert unhealthy[0].url == FEED
        assert unhealthy[0].success_rate_percent == 60.00
        assert [e.message for e in unhealthy[0].recent_errors] == [
            "timeout 7", "timeout 8", "timeout 9",
        ]

    def test_failure_without_message(self, run_with_store):
        async def body(store):
            await store.record_feed_attempt(FEED, False, 10.0, 0)
            return await store.get_unhealthy_feeds()

        (feed,) = run_with_store(body)
        assert feed.recent_errors[0].message == "Unknown error"
        assert feed.last_successful_at is None
