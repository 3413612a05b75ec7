"""
Application configuration using Pydantic Settings.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class FetchSettings(BaseSettings):
    """Retry and concurrency settings for feed fetching."""

    model_config = SettingsConfigDict(env_prefix="FETCH_")

    max_attempts: int = Field(
        default=2,
        ge=1,
        description="Attempts per feed endpoint before it is skipped for the run",
    )
    backoff_base_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Sleep after failed attempt i is base * (i + 1)",
    )
    timeout_seconds: float = Field(default=10.0, gt=0.0)
    max_concurrent: int = Field(default=8, ge=1)
    user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
        ),
    )


class ClassifierSettings(BaseSettings):
    """Keyword lists for content classification."""

    model_config = SettingsConfigDict(env_prefix="CLASSIFIER_")

    primary_keywords: list[str] = Field(
        default=[
            "climate change",
            "global warming",
            "greenhouse gas",
            "carbon emissions",
            "sea level rise",
            "climate crisis",
            "climate action",
            "paris agreement",
            "carbon footprint",
            "climate science",
        ],
    )
    related_keywords: list[str] = Field(
        default=[
            "weather pattern",
            "extreme weather",
            "drought",
            "flood",
            "wildfire",
            "hurricane",
            "environmental",
            "renewable energy",
            "sustainability",
            "biodiversity",
            "ecosystem",
            "conservation",
        ],
    )
    institutional_sources: list[str] = Field(default=["IPCC", "UN_Climate"])

    @field_validator("primary_keywords", "related_keywords")
    @classmethod
    def lowercase_keywords(cls, v: list[str]) -> list[str]:
        return [k.strip().lower() for k in v if k.strip()]


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Climate Feed Monitor"
    app_version: str = "0.1.0"
    debug: bool = Field(default=False)
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = Field(default="INFO")
    log_format: Literal["json", "console"] = "json"

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3001)
    cors_origins: list[str] = Field(default=["http://localhost:3000"])

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./climate_feed.db",
        description="Async database URL (SQLAlchemy format)",
    )

    # Feed registry (JSON file replacing the built-in sources)
    feed_registry_path: Optional[str] = Field(default=None)

    # Scheduler
    fetch_interval_hours: float = Field(
        default=6,
        gt=0,
        description="Interval between scheduled ingestion runs",
    )
    run_on_startup: bool = Field(default=True)

    # Feed health
    unhealthy_threshold_percent: float = Field(default=70.0, ge=0.0, le=100.0)

    # Deduplication
    dedup_similarity: Literal["exact", "sequence", "token_set"] = "exact"
    dedup_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    dedup_window_hours: float = Field(default=24.0, gt=0.0)

    # Nested groups
    fetch: FetchSettings = Field(default_factory=FetchSettings)
    classifier: ClassifierSettings = Field(default_factory=ClassifierSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
