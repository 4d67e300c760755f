"""Engine layer exports."""

from .classifier import ResultClassifier, SectionKind
from .dedup import DeduplicationResult, Deduplicator
from .fetcher import FetchResult, Fetcher
from .prices import extract_interest, extract_price
from .relevance import RelevanceFilter
from .request_builder import Engine, RequestBuilder, SearchRequest
from .stats import ObservationAccumulator, aggregate, summarize

__all__ = [
    "DeduplicationResult",
    "Deduplicator",
    "Engine",
    "FetchResult",
    "Fetcher",
    "ObservationAccumulator",
    "RelevanceFilter",
    "RequestBuilder",
    "ResultClassifier",
    "SearchRequest",
    "SectionKind",
    "aggregate",
    "extract_interest",
    "extract_price",
    "summarize",
]
