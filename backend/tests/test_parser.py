"""
Tests for RSS/Atom parsing and HTTP retrieval.
"""

import asyncio
from datetime import datetime, timezone

import httpx
import pytest

from climate_feed.core.errors import FeedFetchError, FeedParseError
from climate_feed.services.ingestion.parser import (
    HttpFeedParser,
    clean_html,
    parse_atom_date,
    parse_document,
    parse_rss_date,
)

FEED_URL = "https://example.org/feed.xml"

RSS_DOCUMENT = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:content="http://purl.org/rss/1.0/modules/content/">
  <channel>
    <title>Climate Desk</title>
    <item>
      <title>Arctic sea ice hits record low</title>
      <link>https://example.org/arctic</link>
      <pubDate>Mon, 15 Jan 2024 10:30:00 GMT</pubDate>
      <description>&lt;p&gt;Satellite data shows &amp;amp; confirms&lt;/p&gt;</description>
    </item>
    <item>
      <title>Drought outlook</title>
      <link>https://example.org/drought</link>
      <description>Short teaser</description>
      <content:encoded><![CDATA[<div>Full <b>drought</b> report</div>]]></content:encoded>
    </item>
  </channel>
</rss>
"""

ATOM_DOCUMENT = b"""<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Ocean Notes</title>
  <entry>
    <title>Coral bleaching update</title>
    <link rel="alternate" href="https://example.org/coral"/>
    <id>urn:uuid:1</id>
    <updated>2024-02-01T08:00:00Z</updated>
    <summary>Reef monitoring results</summary>
  </entry>
  <entry>
    <title>Untitled link entry</title>
    <id>https://example.org/by-id</id>
    <published>2024-02-02T09:15:00+01:00</published>
  </entry>
</feed>
"""


class TestHelpers:
    """Tests for text and date helpers."""

    def test_clean_html(self):
        assert clean_html("<p>Hello&nbsp;<b>world</b></p>\n\n") == "Hello world"
        assert clean_html(None) == ""

    def test_parse_rss_date(self):
        parsed = parse_rss_date("Mon, 15 Jan 2024 10:30:00 GMT")
        assert parsed == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)

    def test_parse_rss_date_accepts_iso(self):
        assert parse_rss_date("2024-01-15T10:30:00Z") == datetime(
            2024, 1, 15, 10, 30, tzinfo=timezone.utc
        )

    def test_unparseable_dates(self):
        assert parse_rss_date("not a date") is None
        assert parse_atom_date("") is None


class TestParseDocument:
    """Tests for parse_document."""

    def test_rss(self):
        feed = parse_document(RSS_DOCUMENT, FEED_URL)

        assert feed.url == FEED_URL
        assert feed.title == "Climate Desk"
        assert len(feed.items) == 2

        first, second = feed.items
        assert first.title == "Arctic sea ice hits record low"
        assert first.link == "https://example.org/arctic"
        assert first.pub_date == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)
        assert first.content_snippet == "Satellite data shows & confirms"

        assert second.pub_date is None
        assert second.description == "Short teaser"
        assert second.content_snippet == "Full drought report"

    def test_atom(self):
        feed = parse_document(ATOM_DOCUMENT, FEED_URL)

        assert feed.title == "Ocean Notes"
        coral, by_id = feed.items
        assert coral.link == "https://example.org/coral"
        assert coral.pub_date == datetime(2024, 2, 1, 8, 0, tzinfo=timezone.utc)
        assert coral.content_snippet == "Reef monitoring results"

        assert by_id.link == "https://example.org/by-id"
        assert by_id.pub_date == datetime(2024, 2, 2, 8, 15, tzinfo=timezone.utc)
        assert by_id.content_snippet is None

    def test_atom_xhtml_text_constructs(self):
        document = b"""<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title type="xhtml"><div xmlns="http://www.w3.org/1999/xhtml">Sea <em>Notes</em></div></title>
  <entry>
    <title type="xhtml">
      <div xmlns="http://www.w3.org/1999/xhtml">Sea level rise hits <b>record</b></div>
    </title>
    <id>https://example.org/sea-level</id>
    <updated>2024-03-01T00:00:00Z</updated>
    <summary type="xhtml"><div xmlns="http://www.w3.org/1999/xhtml"><p>Tide gauges</p></div></summary>
    <content type="xhtml">
      <div xmlns="http://www.w3.org/1999/xhtml"><p>Global <i>warming</i> body</p></div>
    </content>
  </entry>
</feed>
"""

        feed = parse_document(document, FEED_URL)

        assert feed.title == "Sea Notes"
        (entry,) = feed.items
        assert entry.title == "Sea level rise hits record"
        assert entry.description == "Tide gauges"
        assert entry.content == "Global warming body"
        assert entry.content_snippet == "Global warming body"

    def test_malformed_document(self):
        with pytest.raises(FeedParseError) as exc_info:
            parse_document(b"<rss><channel><item>", FEED_URL)
        assert exc_info.value.url == FEED_URL

    def test_non_feed_document(self):
        with pytest.raises(FeedParseError, match="html"):
            parse_document(b"<html><body>Not a feed</body></html>", FEED_URL)


class TestHttpFeedParser:
    """Tests for HttpFeedParser with a mocked transport."""

    def test_fetches_and_parses(self):
        seen_headers = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen_headers.update(request.headers)
            return httpx.Response(200, content=RSS_DOCUMENT)

        parser = HttpFeedParser(user_agent="test-agent/1.0", transport=httpx.MockTransport(handler))
        feed = asyncio.run(parser.parse_feed(FEED_URL))

        assert len(feed.items) == 2
        assert seen_headers["user-agent"] == "test-agent/1.0"

    def test_http_error_status(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(404))
        parser = HttpFeedParser(transport=transport)

        with pytest.raises(FeedFetchError) as exc_info:
            asyncio.run(parser.parse_feed(FEED_URL))

        assert exc_info.value.status_code == 404
        assert exc_info.value.url == FEED_URL

    def test_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        parser = HttpFeedParser(transport=httpx.MockTransport(handler))

        with pytest.raises(FeedFetchError, match="ConnectError"):
            asyncio.run(parser.parse_feed(FEED_URL))

    def test_slow_response_bounded_by_timeout(self):
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return httpx.Response(200, content=RSS_DOCUMENT)

        parser = HttpFeedParser(timeout=0.05, transport=httpx.MockTransport(handler))

        with pytest.raises(FeedFetchError, match="Timed out"):
            asyncio.run(parser.parse_feed(FEED_URL))

    def test_body_that_is_not_a_feed(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, content=b"<html><body/></html>")
        )
        parser = HttpFeedParser(transport=transport)

        with pytest.raises(FeedParseError):
            asyncio.run(parser.parse_feed(FEED_URL))
