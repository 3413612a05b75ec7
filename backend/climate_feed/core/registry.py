"""
Feed registry: which sources we ingest and where their feeds live.

Structure:
- Source (top level): an institution or outlet, e.g. "NASA"
- Endpoint: one feed URL belonging to a source
- Categories: descriptive tags; the first one is the display label for
  every article coming from the source
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from climate_feed.core.errors import FeedRegistryError

DEFAULT_CATEGORY_LABEL = "General"


@dataclass(frozen=True)
class FeedSource:
    """A named source with one or more feed endpoints."""

    name: str
    urls: tuple[str, ...]
    categories: tuple[str, ...]

    @property
    def category_label(self) -> str:
        return self.categories[0] if self.categories else DEFAULT_CATEGORY_LABEL


@dataclass(frozen=True)
class FeedEndpoint:
    """A single (source, url) pair to fetch."""

    source: str
    url: str
    category_label: str


class FeedRegistry:
    """Ordered mapping of source name to FeedSource."""

    def __init__(self, sources: list[FeedSource] | None = None):
        self._sources: dict[str, FeedSource] = {}
        for source in sources or []:
            if source.name in self._sources:
                raise FeedRegistryError(f"Duplicate source in registry: {source.name}")
            self._sources[source.name] = source

    def __len__(self) -> int:
        return len(self._sources)

    def __contains__(self, name: str) -> bool:
        return name in self._sources

    def get_source(self, name: str) -> FeedSource | None:
        return self._sources.get(name)

    def sources(self) -> list[FeedSource]:
        return list(self._sources.values())

    def endpoints(self) -> Iterator[FeedEndpoint]:
        """Yield every (source, url) pair in registry order."""
        for source in self._sources.values():
            for url in source.urls:
                yield FeedEndpoint(
                    source=source.name,
                    url=url,
                    category_label=source.category_label,
                )

    def to_dict(self) -> dict:
        return {
            s.name: {"urls": list(s.urls), "categories": list(s.categories)}
            for s in self._sources.values()
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FeedRegistry":
        """
        Build a registry from ``{name: {"urls": [...], "categories": [...]}}``.
        """
        if not isinstance(data, dict):
            raise FeedRegistryError("Feed registry must be a JSON object")

        sources = []
        for name, entry in data.items():
            if not isinstance(entry, dict):
                raise FeedRegistryError(f"Registry entry for {name} must be an object")
            urls = entry.get("urls") or []
            if not isinstance(urls, list) or not all(isinstance(u, str) for u in urls):
                raise FeedRegistryError(f"Registry entry for {name} needs a list of urls")
            categories = entry.get("categories") or []
            sources.append(
                FeedSource(name=name, urls=tuple(urls), categories=tuple(categories))
            )
        return cls(sources)

    @classmethod
    def from_json_file(cls, path: str | Path) -> "FeedRegistry":
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise FeedRegistryError(f"Could not load feed registry from {path}: {e}") from e
        return cls.from_dict(data)


# =============================================================================
# Built-in sources
# =============================================================================

NASA = FeedSource(
    name="NASA",
    urls=(
        "https://www.nasa.gov/rss/dyn/breaking_news.rss",
        "https://science.nasa.gov/climate-change/stories/",
        "https://www.nasa.gov/news-release/feed/",
        "https://earthobservatory.nasa.gov/feeds/natural-hazards.rss",
    ),
    categories=("Satellite Data", "Climate Research", "Environmental Monitoring"),
)

NOAA = FeedSource(
    name="NOAA",
    urls=("https://www.ncei.noaa.gov/access/monitoring/monthly-report/rss.xml",),
    categories=("Weather Patterns", "Ocean Data", "Atmospheric Research"),
)

CLIMATE_WEATHER_GOV = FeedSource(
    name="ClimateWeatherGov",
    urls=(
        "https://www.climate.gov/feeds/news-features/climatetech.rss",
        "https://www.climate.gov/feeds/news-features/climateand.rss",
        "https://www.climate.gov/feeds/news-features/understandingclimate.rss",
        "https://www.climate.gov/feeds/news-features/casestudies.rss",
        "https://www.weather.gov/wrn/xml/rss_alert.xml",
    ),
    categories=("Weather Patterns", "Ocean Data", "Atmospheric Research"),
)

UN_CLIMATE = FeedSource(
    name="UN_Climate",
    urls=(
        "https://news.un.org/feed/subscribe/en/news/topic/migrants-and-refugees/feed/rss.xml",
        "https://news.un.org/feed/subscribe/en/news/topic/climate-change/feed/rss.xml",
    ),
    categories=("Global Policy", "International Action", "Climate Agreements"),
)

BBC_CLIMATE = FeedSource(
    name="BBC_Climate",
    urls=("https://feeds.bbci.co.uk/news/science_and_environment/rss.xml",),
    categories=("Climate News", "Environmental Reports", "Science Coverage"),
)

COMMUNITY_CLIMATE = FeedSource(
    name="Community_Climate",
    urls=(
        "https://350.org/feed/",
        "https://climatejusticealliance.org/feed/",
        "https://feeds.feedburner.com/ConservationInternationalBlog",
    ),
    categories=("Community Action", "Climate Justice", "Local Initiatives"),
)

INDIGENOUS_CLIMATE = FeedSource(
    name="Indigenous_Climate",
    urls=("https://indianz.com/rss/news.xml",),
    categories=("Traditional Knowledge", "Indigenous Perspectives", "Land Management"),
)


def build_default_registry() -> FeedRegistry:
    """Build the built-in registry."""
    return FeedRegistry([
        NASA,
        NOAA,
        CLIMATE_WEATHER_GOV,
        UN_CLIMATE,
        BBC_CLIMATE,
        COMMUNITY_CLIMATE,
        INDIGENOUS_CLIMATE,
    ])


def load_registry(path: str | Path | None = None) -> FeedRegistry:
    """Load the registry from a JSON file, or fall back to the built-in sources."""
    if path:
        return FeedRegistry.from_json_file(path)
    return build_default_registry()
