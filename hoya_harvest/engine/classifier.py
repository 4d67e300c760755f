"""Dispatch raw response sections to type-specific record builders."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Iterable, Sequence

import structlog

from ..errors import MalformedResponseError
from ..models import ResultRecord, SearchTarget
from .prices import extract_price
from .relevance import RelevanceFilter

LISTING_SECTION = "shopping_results"


class SectionKind(str, Enum):
    """Known top-level sections of a web search payload."""

    ORGANIC = "organic"
    ADS = "ads"
    INLINE_SHOPPING = "inline_shopping"
    LOCAL = "local"
    KNOWLEDGE_GRAPH = "knowledge_graph"
    RELATED_SEARCHES = "related_searches"
    METADATA = "metadata"
    UNRECOGNIZED = "unrecognized"

    @classmethod
    def from_key(cls, key: str) -> "SectionKind":
        return _SECTION_KEYS.get(key, cls.UNRECOGNIZED)


_SECTION_KEYS: dict[str, SectionKind] = {
    "organic_results": SectionKind.ORGANIC,
    "ads": SectionKind.ADS,
    "inline_shopping_results": SectionKind.INLINE_SHOPPING,
    "shopping_results": SectionKind.INLINE_SHOPPING,
    "local_results": SectionKind.LOCAL,
    "knowledge_graph": SectionKind.KNOWLEDGE_GRAPH,
    "related_searches": SectionKind.RELATED_SEARCHES,
    "search_metadata": SectionKind.METADATA,
    "search_parameters": SectionKind.METADATA,
    "search_information": SectionKind.METADATA,
    "serpapi_pagination": SectionKind.METADATA,
    "pagination": SectionKind.METADATA,
}


@dataclass(frozen=True, slots=True)
class ClassifyContext:
    """Everything a section handler needs besides the section itself."""

    target: SearchTarget
    keywords: Sequence[str]
    query: str
    collected_at: str


def _text(value: Any) -> str | None:
    if value is None or value == "":
        return None
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value if v not in (None, "")) or None
    if isinstance(value, dict):
        return json.dumps(value, ensure_ascii=False, sort_keys=True)
    return str(value)


def _number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).replace(",", ""))
    except (TypeError, ValueError):
        return None


def _int(value: Any) -> int | None:
    number = _number(value)
    return int(number) if number is not None else None


def _items(section: Any) -> list[dict[str, Any]]:
    if isinstance(section, dict):
        for key in ("places", "results", "items"):
            if isinstance(section.get(key), list):
                section = section[key]
                break
        else:
            return [section]
    if not isinstance(section, list):
        return []
    return [item for item in section if isinstance(item, dict)]


class ResultClassifier:
    """Turn decoded payloads into relevance-filtered result records."""

    def __init__(
        self,
        relevance: RelevanceFilter,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.relevance = relevance
        self.logger = logger or structlog.get_logger("hoya_harvest.classifier")
        self._handlers: dict[SectionKind, Callable[[Any, ClassifyContext], list[ResultRecord]]] = {
            SectionKind.ORGANIC: self._organic,
            SectionKind.ADS: self._ads,
            SectionKind.INLINE_SHOPPING: self._inline_shopping,
            SectionKind.LOCAL: self._local,
            SectionKind.KNOWLEDGE_GRAPH: self._knowledge_graph,
            SectionKind.RELATED_SEARCHES: self._related_searches,
        }

    # ------------------------------------------------------------------
    def classify_listing(
        self,
        payload: dict[str, Any],
        target: SearchTarget,
        keywords: Sequence[str],
        query: str = "",
        collected_at: str | None = None,
    ) -> list[ResultRecord]:
        context = self._context(target, keywords, query, collected_at)
        section = payload.get(LISTING_SECTION)
        if not isinstance(section, list):
            error = MalformedResponseError(f"Payload has no {LISTING_SECTION} array")
            self.logger.info("listing_no_results", entity=target.name, error=str(error))
            return []
        return self._shopping_items(section, context, source_type="shopping")

    def classify_web(
        self,
        payload: dict[str, Any],
        target: SearchTarget,
        keywords: Sequence[str],
        query: str = "",
        collected_at: str | None = None,
    ) -> list[ResultRecord]:
        context = self._context(target, keywords, query, collected_at)
        records: list[ResultRecord] = []
        for key, section in payload.items():
            kind = SectionKind.from_key(key)
            if kind is SectionKind.METADATA:
                continue
            if kind is SectionKind.UNRECOGNIZED:
                self.logger.debug("section_ignored", section=key, entity=target.name)
                continue
            records.extend(self._handlers[kind](section, context))
        return records

    # ------------------------------------------------------------------
    def _context(
        self,
        target: SearchTarget,
        keywords: Sequence[str],
        query: str,
        collected_at: str | None,
    ) -> ClassifyContext:
        stamp = collected_at or datetime.now(timezone.utc).isoformat(timespec="seconds")
        return ClassifyContext(target=target, keywords=list(keywords), query=query, collected_at=stamp)

    def _accept(self, title: str | None, snippet: str | None, context: ClassifyContext) -> bool:
        return self.relevance.is_relevant(title, snippet, context.keywords, context.target.name)

    def _keep(self, records: Iterable[ResultRecord], context: ClassifyContext) -> list[ResultRecord]:
        return [record for record in records if self._accept(record.title, record.snippet, context)]

    def _shopping_items(
        self, items: Iterable[Any], context: ClassifyContext, source_type: str
    ) -> list[ResultRecord]:
        records = []
        for position, item in enumerate(_items(items), start=1):
            title = _text(item.get("title"))
            snippet = _text(item.get("snippet") or item.get("description"))
            price = extract_price(item.get("extracted_price"), item.get("price"), title, snippet)
            old_price = extract_price(item.get("extracted_old_price"), item.get("old_price"))
            records.append(
                ResultRecord(
                    source_type=source_type,
                    entity=context.target.name,
                    query=context.query or None,
                    position=_int(item.get("position")) or position,
                    title=title,
                    price_raw=_text(item.get("price")),
                    price=price,
                    old_price_raw=_text(item.get("old_price")),
                    old_price=old_price,
                    link=_text(item.get("link")),
                    product_id=_text(item.get("product_id")),
                    product_link=_text(item.get("product_link")),
                    product_api_link=_text(item.get("serpapi_product_api")),
                    store=_text(item.get("source")),
                    store_rating=_number(item.get("store_rating", item.get("rating"))),
                    store_reviews=_int(item.get("store_reviews", item.get("reviews"))),
                    delivery=_text(item.get("delivery")),
                    discount=_text(item.get("discount")),
                    tag=_text(item.get("tag")),
                    comparisons=_text(item.get("number_of_comparisons")),
                    comparison_link=_text(item.get("comparison_link")),
                    snippet=snippet,
                    extensions=_text(item.get("extensions")),
                    thumbnail=_text(item.get("thumbnail")),
                    image=_text(item.get("image") or item.get("serpapi_thumbnail")),
                    additional_options=_text(item.get("multiple_sources") or item.get("alternative_price")),
                    collected_at=context.collected_at,
                )
            )
        return self._keep(records, context)

    def _organic(self, section: Any, context: ClassifyContext) -> list[ResultRecord]:
        records = []
        for position, item in enumerate(_items(section), start=1):
            title = _text(item.get("title"))
            snippet = _text(item.get("snippet"))
            rich = item.get("rich_snippet") or {}
            detected: dict[str, Any] = {}
            extensions: list[Any] = []
            for part in ("top", "bottom"):
                block = rich.get(part) if isinstance(rich, dict) else None
                if isinstance(block, dict):
                    detected.update(block.get("detected_extensions") or {})
                    extensions.extend(block.get("extensions") or [])
            formatted = next((ext for ext in extensions if isinstance(ext, str) and "$" in ext), None)
            records.append(
                ResultRecord(
                    source_type="organic",
                    entity=context.target.name,
                    query=context.query or None,
                    position=_int(item.get("position")) or position,
                    title=title,
                    price_raw=formatted or _text(detected.get("price")),
                    price=extract_price(detected.get("price"), formatted, title, snippet),
                    link=_text(item.get("link")),
                    store=_text(item.get("source") or item.get("displayed_link")),
                    store_rating=_number(detected.get("rating")),
                    store_reviews=_int(detected.get("reviews")),
                    snippet=snippet,
                    extensions=_text(extensions),
                    thumbnail=_text(item.get("thumbnail")),
                    collected_at=context.collected_at,
                )
            )
        return self._keep(records, context)

    def _ads(self, section: Any, context: ClassifyContext) -> list[ResultRecord]:
        records = []
        for position, item in enumerate(_items(section), start=1):
            title = _text(item.get("title"))
            snippet = _text(item.get("description") or item.get("snippet"))
            records.append(
                ResultRecord(
                    source_type="ad",
                    entity=context.target.name,
                    query=context.query or None,
                    position=_int(item.get("position")) or position,
                    title=title,
                    price_raw=_text(item.get("price")),
                    price=extract_price(item.get("extracted_price"), item.get("price"), title, snippet),
                    link=_text(item.get("link")),
                    store=_text(item.get("source") or item.get("displayed_link")),
                    store_rating=_number(item.get("rating")),
                    store_reviews=_int(item.get("reviews")),
                    tag=_text(item.get("tag")),
                    snippet=snippet,
                    extensions=_text(item.get("extensions")),
                    thumbnail=_text(item.get("thumbnail")),
                    additional_options=_text(item.get("sitelinks")),
                    collected_at=context.collected_at,
                )
            )
        return self._keep(records, context)

    def _inline_shopping(self, section: Any, context: ClassifyContext) -> list[ResultRecord]:
        return self._shopping_items(section, context, source_type="inline_shopping")

    def _local(self, section: Any, context: ClassifyContext) -> list[ResultRecord]:
        records = []
        for position, place in enumerate(_items(section), start=1):
            title = _text(place.get("title"))
            snippet = _text(place.get("description") or place.get("type") or place.get("address"))
            links = place.get("links") if isinstance(place.get("links"), dict) else {}
            records.append(
                ResultRecord(
                    source_type="local",
                    entity=context.target.name,
                    query=context.query or None,
                    position=_int(place.get("position")) or position,
                    title=title,
                    price_raw=_text(place.get("price")),
                    price=extract_price(None, place.get("price"), title, snippet),
                    link=_text(links.get("website") or place.get("website") or place.get("link")),
                    product_id=None,
                    store=_text(place.get("address")),
                    store_rating=_number(place.get("rating")),
                    store_reviews=_int(place.get("reviews")),
                    snippet=snippet,
                    thumbnail=_text(place.get("thumbnail")),
                    collected_at=context.collected_at,
                )
            )
        return self._keep(records, context)

    def _knowledge_graph(self, section: Any, context: ClassifyContext) -> list[ResultRecord]:
        if not isinstance(section, dict):
            return []
        title = _text(section.get("title"))
        snippet = _text(section.get("description"))
        source = section.get("source") if isinstance(section.get("source"), dict) else {}
        record = ResultRecord(
            source_type="knowledge_graph",
            entity=context.target.name,
            query=context.query or None,
            position=1,
            title=title,
            price_raw=_text(section.get("price")),
            price=extract_price(section.get("extracted_price"), section.get("price"), title, snippet),
            link=_text(source.get("link") or section.get("website")),
            store=_text(source.get("name")),
            snippet=snippet,
            thumbnail=_text(section.get("thumbnail")),
            image=_text(section.get("header_images") or section.get("image")),
            collected_at=context.collected_at,
        )
        return self._keep([record], context)

    def _related_searches(self, section: Any, context: ClassifyContext) -> list[ResultRecord]:
        records = []
        for position, item in enumerate(_items(section), start=1):
            title = _text(item.get("query"))
            records.append(
                ResultRecord(
                    source_type="related_search",
                    entity=context.target.name,
                    query=context.query or None,
                    position=position,
                    title=title,
                    link=_text(item.get("link")),
                    collected_at=context.collected_at,
                )
            )
        return self._keep(records, context)


__all__ = ["ClassifyContext", "ResultClassifier", "SectionKind"]
