"""Pydantic models used across the hoya-harvest configuration flow."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator


class SearchConfig(BaseModel):
    """Fixed parameters attached to every search API request."""

    api_base_url: str = "https://serpapi.com/search.json"
    region: str = "us"
    language: str = "en"
    page_size: int = 100
    google_domain: str = "google.com"
    supported_regions: list[str] = Field(default_factory=lambda: ["us", "uk", "ca", "au"])
    max_pages: int = 3

    @model_validator(mode="after")
    def _validate_search(self) -> "SearchConfig":
        if self.page_size < 1:
            raise ValueError("page_size must be >= 1")
        if self.max_pages < 1:
            raise ValueError("max_pages must be >= 1")
        self.supported_regions = [region.lower() for region in self.supported_regions]
        return self


class FetchConfig(BaseModel):
    """Retry, backoff and cache controls for the fetcher."""

    max_attempts: int = 4
    base_delay: float = 1.0
    max_delay: float = 30.0
    timeout: float = 30.0
    cache_ttl_seconds: int = 6 * 60 * 60

    @model_validator(mode="after")
    def _validate_backoff(self) -> "FetchConfig":
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must be non-negative")
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        if self.cache_ttl_seconds <= 0:
            raise ValueError("cache_ttl_seconds must be positive")
        return self


class RelevanceConfig(BaseModel):
    """Query shaping and precision filter settings."""

    domain_marker: str = "hoya"
    query_prefix: str = "Hoya"
    placeholder_tokens: list[str] = Field(default_factory=lambda: ["sp", "sp."])
    qualifier_phrase: str = "plant for sale"
    excluded_domains: list[str] = Field(
        default_factory=lambda: ["ebay.com", "etsy.com", "amazon.com", "facebook.com"]
    )
    min_keyword_matches: int = 2
    max_name_length: int = 100

    @field_validator("placeholder_tokens", mode="before")
    @classmethod
    def _lower_tokens(cls, value: Any) -> list[str]:
        if value in (None, ""):
            return []
        return [str(token).strip().lower() for token in value]

    @model_validator(mode="after")
    def _validate_limits(self) -> "RelevanceConfig":
        if not self.domain_marker.strip():
            raise ValueError("domain_marker cannot be empty")
        if self.min_keyword_matches < 0:
            raise ValueError("min_keyword_matches must be >= 0")
        if self.max_name_length < 1:
            raise ValueError("max_name_length must be >= 1")
        return self


class TrendPhaseConfig(BaseModel):
    """One window of the trend harvest."""

    label: str
    days: int
    weeks: int
    sheet: str

    @model_validator(mode="after")
    def _validate_window(self) -> "TrendPhaseConfig":
        if self.days < 1 or self.weeks < 1:
            raise ValueError("Trend phase window must be positive")
        return self


def _default_phases() -> list[TrendPhaseConfig]:
    return [
        TrendPhaseConfig(label="90d", days=90, weeks=13, sheet="trends_90d"),
        TrendPhaseConfig(label="180d", days=180, weeks=26, sheet="trends_180d"),
        TrendPhaseConfig(label="365d", days=365, weeks=52, sheet="trends_365d"),
    ]


class TrendConfig(BaseModel):
    """Checkpointed trend harvest controls."""

    batch_size: int = 20
    politeness_delay: float = 1.0
    rearm_delay_seconds: float = 60.0
    handler_name: str = "trends.invoke"
    phases: list[TrendPhaseConfig] = Field(default_factory=_default_phases)

    @model_validator(mode="after")
    def _validate_trends(self) -> "TrendConfig":
        if self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if self.politeness_delay < 0 or self.rearm_delay_seconds < 0:
            raise ValueError("Delays must be non-negative")
        if not self.phases:
            raise ValueError("At least one trend phase is required")
        labels = [phase.label for phase in self.phases]
        if len(set(labels)) != len(labels):
            raise ValueError("Trend phase labels must be unique")
        return self


class SheetNames(BaseModel):
    """Names of the tables inside the workbook database."""

    entities: str = "entities"
    results: str = "results"
    metrics: str = "metrics"


class GlobalConfig(BaseModel):
    """Top level configuration shared by every command."""

    api_key: str | None = None
    database_path: Path = Field(default=Path("data/harvest.db"))
    outputs_dir: Path = Field(default=Path("data/outputs"))
    header_rows: int = 2
    enable_progress_bar: bool = True
    search: SearchConfig = Field(default_factory=SearchConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    relevance: RelevanceConfig = Field(default_factory=RelevanceConfig)
    trends: TrendConfig = Field(default_factory=TrendConfig)
    sheets: SheetNames = Field(default_factory=SheetNames)

    @field_validator("database_path", "outputs_dir", mode="before")
    @classmethod
    def _coerce_paths(cls, value: Any) -> Path:
        return Path(value)

    @model_validator(mode="after")
    def _validate_header(self) -> "GlobalConfig":
        if self.header_rows < 1:
            raise ValueError("header_rows must be >= 1")
        return self

    @property
    def first_data_row(self) -> int:
        return self.header_rows + 1

    def resolve_path(self, path: Path, base_dir: Path) -> Path:
        """Return ``path`` anchored at ``base_dir`` when it is relative."""

        if not path.is_absolute():
            return (base_dir / path).resolve()
        return path


__all__ = [
    "FetchConfig",
    "GlobalConfig",
    "RelevanceConfig",
    "SearchConfig",
    "SheetNames",
    "TrendConfig",
    "TrendPhaseConfig",
]
