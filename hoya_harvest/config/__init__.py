"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import (
    FetchConfig,
    GlobalConfig,
    RelevanceConfig,
    SearchConfig,
    SheetNames,
    TrendConfig,
    TrendPhaseConfig,
)

__all__ = [
    "ConfigLocator",
    "ConfigRepository",
    "FetchConfig",
    "GlobalConfig",
    "RelevanceConfig",
    "SearchConfig",
    "SheetNames",
    "TrendConfig",
    "TrendPhaseConfig",
]
