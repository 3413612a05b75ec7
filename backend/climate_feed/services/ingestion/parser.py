"""
RSS/Atom feed retrieval and parsing.

Fetches a feed document over HTTP and maps RSS 2.0, RSS 1.0 (RDF) and
Atom entries onto FeedItem records. Item fields are kept raw and
optional; fallbacks are applied later by the normalizer.
"""

import asyncio
import html
import re
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Optional
from xml.etree import ElementTree

import httpx
import structlog

from climate_feed.core.errors import FeedFetchError, FeedParseError
from climate_feed.models.domain import FeedItem, ParsedFeed
from climate_feed.services.ingestion.base import BaseFeedParser

logger = structlog.get_logger(__name__)

# XML namespaces
ATOM_NS = "{http://www.w3.org/2005/Atom}"
DC_NS = "{http://purl.org/dc/elements/1.1/}"
CONTENT_NS = "{http://purl.org/rss/1.0/modules/content/}"

MAX_SNIPPET_LENGTH = 2000


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1] if "}" in tag else tag


def _child_text(elem: ElementTree.Element, name: str) -> Optional[str]:
    """Text of the first child whose local name matches, ignoring namespaces."""
    for child in elem:
        if _local_name(child.tag) == name and child.text is not None:
            text = child.text.strip()
            if text:
                return text
    return None


def _atom_text(parent: ElementTree.Element, name: str) -> Optional[str]:
    """
    Text of an Atom text construct.

    type="xhtml" wraps the text in a child <div>, so nested text is
    collected as well as the element's own.
    """
    elem = parent.find(f"{ATOM_NS}{name}")
    if elem is None:
        return None
    if len(elem):
        text = " ".join("".join(elem.itertext()).split())
    else:
        text = (elem.text or "").strip()
    return text or None


def clean_html(text: Optional[str]) -> str:
    """Strip HTML tags and entities from content."""
    if not text:
        return ""

    clean = re.sub(r"<[^>]+>", " ", text)
    clean = html.unescape(clean)
    clean = " ".join(clean.split())
    return clean.strip()


def parse_rss_date(date_str: Optional[str]) -> Optional[datetime]:
    """Parse RSS date format (RFC 822), falling back to ISO 8601."""
    if not date_str:
        return None

    try:
        return parsedate_to_datetime(date_str)
    except (ValueError, TypeError, IndexError):
        pass

    return parse_atom_date(date_str)


def parse_atom_date(date_str: Optional[str]) -> Optional[datetime]:
    """Parse Atom/ISO date format."""
    if not date_str:
        return None

    try:
        return datetime.fromisoformat(date_str.replace("Z", "+00:00"))
    except ValueError:
        pass

    try:
        # Try without timezone
        return datetime.fromisoformat(date_str[:19])
    except ValueError:
        return None


def parse_document(content: bytes | str, url: str) -> ParsedFeed:
    """
    Parse an RSS or Atom document.

    Raises:
        FeedParseError: if the document is not well-formed XML or is
            neither RSS nor Atom.
    """
    try:
        root = ElementTree.fromstring(content)
    except ElementTree.ParseError as e:
        raise FeedParseError(url, f"Malformed feed document: {e}") from e

    root_name = _local_name(root.tag)
    if root_name == "feed":
        return _parse_atom(root, url)
    if root_name in ("rss", "RDF"):
        return _parse_rss(root, url)
    raise FeedParseError(url, f"Not an RSS or Atom document (root element <{root_name}>)")


def _parse_rss(root: ElementTree.Element, url: str) -> ParsedFeed:
    """Parse RSS 2.0 / RSS 1.0 feed."""
    channel = next((e for e in root.iter() if _local_name(e.tag) == "channel"), None)
    title = _child_text(channel, "title") if channel is not None else None

    items = [
        _parse_rss_item(elem)
        for elem in root.iter()
        if _local_name(elem.tag) == "item"
    ]
    return ParsedFeed(url=url, title=title, items=items)


def _parse_rss_item(item: ElementTree.Element) -> FeedItem:
    """Parse a single RSS item."""
    description = _child_text(item, "description")
    content = item.findtext(f"{CONTENT_NS}encoded") or None
    if content:
        content = content.strip() or None

    pub_date = parse_rss_date(_child_text(item, "pubDate"))
    if pub_date is None:
        pub_date = parse_atom_date(item.findtext(f"{DC_NS}date"))

    snippet = clean_html(content or description)

    return FeedItem(
        title=_child_text(item, "title"),
        link=_child_text(item, "link") or item.get("{http://www.w3.org/1999/02/22-rdf-syntax-ns#}about"),
        pub_date=pub_date,
        description=description,
        content=content or description,
        content_snippet=snippet[:MAX_SNIPPET_LENGTH] if snippet else None,
    )


def _parse_atom(root: ElementTree.Element, url: str) -> ParsedFeed:
    """Parse Atom feed."""
    items = [_parse_atom_entry(entry) for entry in root.findall(f"{ATOM_NS}entry")]
    return ParsedFeed(url=url, title=_atom_text(root, "title"), items=items)


def _parse_atom_entry(entry: ElementTree.Element) -> FeedItem:
    """Parse a single Atom entry."""
    link = None
    for link_elem in entry.findall(f"{ATOM_NS}link"):
        rel = link_elem.get("rel", "alternate")
        if rel == "alternate":
            link = link_elem.get("href")
            break
    if not link:
        entry_id = entry.findtext(f"{ATOM_NS}id", "").strip()
        if entry_id.startswith("http"):
            link = entry_id

    summary = _atom_text(entry, "summary")
    content = _atom_text(entry, "content")

    published_str = entry.findtext(f"{ATOM_NS}published")
    updated_str = entry.findtext(f"{ATOM_NS}updated")

    title = _atom_text(entry, "title")
    snippet = clean_html(content or summary)

    return FeedItem(
        title=title,
        link=link,
        pub_date=parse_atom_date(published_str or updated_str),
        description=summary,
        content=content or summary,
        content_snippet=snippet[:MAX_SNIPPET_LENGTH] if snippet else None,
    )


class HttpFeedParser(BaseFeedParser):
    """Fetches feeds with httpx and parses them with ElementTree."""

    def __init__(
        self,
        timeout: float = 10.0,
        user_agent: str = "ClimateFeedMonitor/1.0",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.user_agent = user_agent
        self._transport = transport

    async def parse_feed(self, url: str) -> ParsedFeed:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                # httpx timeouts apply per operation; bound the whole attempt too
                response = await asyncio.wait_for(
                    client.get(url, headers={"User-Agent": self.user_agent}),
                    self.timeout,
                )
                response.raise_for_status()
        except asyncio.TimeoutError as e:
            raise FeedFetchError(url, f"Timed out after {self.timeout}s fetching feed") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise FeedFetchError(url, f"HTTP {status} fetching feed", status_code=status) from e
        except httpx.HTTPError as e:
            raise FeedFetchError(url, f"{e.__class__.__name__}: {e}") from e

        feed = parse_document(response.content, url)
        logger.debug("Parsed feed", url=url, items=len(feed.items))
        return feed
