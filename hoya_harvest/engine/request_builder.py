"""Build validated search API requests for each query variant."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from ..config import RelevanceConfig, SearchConfig
from ..errors import ValidationError
from ..infra.credentials import validate_credential
from ..models import SearchTarget

CREDENTIAL_PARAM = "api_key"
KEYWORD_LIMIT = 3


class Engine(str, Enum):
    """Engines the pipeline knows how to query."""

    SHOPPING = "google_shopping"
    WEB = "google"
    TRENDS = "google_trends"
    PRODUCT = "google_product"

    @property
    def cache_namespace(self) -> str:
        return {
            Engine.SHOPPING: "shopping",
            Engine.WEB: "web",
            Engine.TRENDS: "trends",
            Engine.PRODUCT: "product",
        }[self]

    @property
    def requires_identifier(self) -> bool:
        return self is Engine.PRODUCT


@dataclass(frozen=True, slots=True)
class SearchRequest:
    """Input for the fetcher."""

    engine: Engine
    query: str
    api_key: str
    region: str
    language: str
    page_size: int
    google_domain: str
    product_id: str | None = None
    date_range: tuple[date, date] | None = None
    continuation_url: str | None = None
    page: int = 1

    def params(self) -> dict[str, str]:
        params: dict[str, str] = {"engine": self.engine.value}
        if self.engine is Engine.TRENDS:
            params.update(
                {
                    "q": self.query,
                    "data_type": "TIMESERIES",
                    "geo": self.region.upper(),
                    "hl": self.language,
                }
            )
            if self.date_range:
                start, end = self.date_range
                params["date"] = f"{start.isoformat()} {end.isoformat()}"
        elif self.engine is Engine.PRODUCT:
            params.update(
                {
                    "product_id": self.product_id or "",
                    "gl": self.region,
                    "hl": self.language,
                    "google_domain": self.google_domain,
                }
            )
        else:
            params.update(
                {
                    "q": self.query,
                    "gl": self.region,
                    "hl": self.language,
                    "num": str(self.page_size),
                    "google_domain": self.google_domain,
                }
            )
        params[CREDENTIAL_PARAM] = self.api_key
        return params

    def resolve_url(self, base_url: str) -> str:
        if self.continuation_url:
            return attach_credential(self.continuation_url, self.api_key)
        return f"{base_url}?{urlencode(self.params())}"


def attach_credential(url: str, api_key: str) -> str:
    """Append the credential to ``url`` unless it already carries one.

    Existing query parameters are left byte-for-byte untouched.
    """

    parts = urlsplit(url)
    names = {name for name, _ in parse_qsl(parts.query, keep_blank_values=True)}
    if CREDENTIAL_PARAM in names:
        return url
    extra = urlencode({CREDENTIAL_PARAM: api_key})
    query = f"{parts.query}&{extra}" if parts.query else extra
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def next_page(request: SearchRequest, next_url: str) -> SearchRequest:
    """Return ``request`` pointed at the continuation URL of its next page."""

    if not next_url:
        raise ValidationError("Continuation URL is empty")
    return replace(
        request,
        continuation_url=attach_credential(next_url, request.api_key),
        page=request.page + 1,
    )


class RequestBuilder:
    """Turn search targets into validated requests."""

    def __init__(self, search: SearchConfig, relevance: RelevanceConfig, api_key: str) -> None:
        self.search = search
        self.relevance = relevance
        self.api_key = api_key

    def keywords_for(self, name: str) -> list[str]:
        placeholders = set(self.relevance.placeholder_tokens)
        usable = [token for token in name.split() if token.lower() not in placeholders]
        return usable[:KEYWORD_LIMIT]

    def shopping(self, target: SearchTarget) -> SearchRequest:
        keywords = self._require_keywords(target)
        prefix = self.relevance.query_prefix.strip()
        terms = list(keywords)
        if prefix and terms[0].lower() != prefix.lower():
            terms.insert(0, prefix)
        return self._build(Engine.SHOPPING, " ".join(terms))

    def web(self, target: SearchTarget) -> SearchRequest:
        keywords = self._require_keywords(target)
        parts = [f'"{" ".join(keywords)}"']
        if self.relevance.qualifier_phrase.strip():
            parts.append(self.relevance.qualifier_phrase.strip())
        parts.extend(f"-site:{domain}" for domain in self.relevance.excluded_domains)
        return self._build(Engine.WEB, " ".join(parts))

    def trends(self, target: SearchTarget, start: date, end: date) -> SearchRequest:
        if not target.name:
            raise ValidationError("Trend request needs a non-empty entity name")
        if end < start:
            raise ValidationError("Trend date range is inverted")
        return self._build(Engine.TRENDS, target.name, date_range=(start, end))

    def product(self, product_id: str) -> SearchRequest:
        return self._build(Engine.PRODUCT, "", product_id=product_id)

    def continuation(self, request: SearchRequest, next_url: str) -> SearchRequest:
        return next_page(request, next_url)

    # ------------------------------------------------------------------
    def _require_keywords(self, target: SearchTarget) -> list[str]:
        keywords = self.keywords_for(target.name)
        if not keywords:
            raise ValidationError(f"No usable keywords in entity name {target.name!r}")
        return keywords

    def _build(
        self,
        engine: Engine | str,
        query: str,
        *,
        product_id: str | None = None,
        date_range: tuple[date, date] | None = None,
    ) -> SearchRequest:
        try:
            engine = Engine(engine)
        except ValueError as exc:
            raise ValidationError(f"Unsupported engine: {engine}") from exc
        if engine.requires_identifier:
            if not (product_id or "").strip():
                raise ValidationError(f"Engine {engine.value} requires a product identifier")
        elif not query.strip():
            raise ValidationError("Query text cannot be empty")
        api_key = validate_credential(self.api_key)
        region = self.search.region.lower()
        if region not in self.search.supported_regions:
            raise ValidationError(f"Unsupported region: {self.search.region}")
        return SearchRequest(
            engine=engine,
            query=query.strip(),
            api_key=api_key,
            region=region,
            language=self.search.language,
            page_size=self.search.page_size,
            google_domain=self.search.google_domain,
            product_id=product_id,
            date_range=date_range,
        )


__all__ = ["Engine", "RequestBuilder", "SearchRequest", "attach_credential", "next_page"]
