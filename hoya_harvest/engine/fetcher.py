"""HTTP fetching with a TTL response cache and exponential backoff."""

from __future__ import annotations

import hashlib
import json
import re
import time
from dataclasses import dataclass, field
from typing import Any, Iterator

import httpx
import structlog

from ..config import FetchConfig, SearchConfig
from ..errors import MalformedResponseError, PermanentFetchError, TransientFetchError
from ..infra.cache import CacheBackend
from .request_builder import Engine, SearchRequest, next_page

_CREDENTIAL_IN_URL = re.compile(r"(api_key=)[^&]+")


@dataclass(slots=True)
class FetchResult:
    """Decoded payload plus the page it came from."""

    url: str
    payload: dict[str, Any] = field(repr=False)
    page: int
    next_url: str | None = None
    from_cache: bool = False


def redact(url: str) -> str:
    return _CREDENTIAL_IN_URL.sub(r"\1***", url)


class Fetcher:
    """Fetch one search API page at a time, caching successful bodies."""

    def __init__(
        self,
        search: SearchConfig,
        fetch: FetchConfig,
        cache: CacheBackend,
        logger: structlog.BoundLogger | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.search = search
        self.config = fetch
        self.cache = cache
        self.logger = logger or structlog.get_logger("hoya_harvest.fetcher")
        self._owns_client = client is None
        self._client = client or httpx.Client(
            follow_redirects=True,
            timeout=fetch.timeout,
            headers={"Accept": "application/json"},
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    @staticmethod
    def cache_key(engine: Engine, url: str) -> str:
        digest = hashlib.sha256(url.encode("utf-8")).hexdigest()
        return f"{engine.cache_namespace}:{digest}"

    def fetch(self, request: SearchRequest) -> FetchResult:
        url = request.resolve_url(self.search.api_base_url)
        key = self.cache_key(request.engine, url)
        cached = self.cache.get(key)
        if cached is not None:
            try:
                payload = json.loads(cached)
            except json.JSONDecodeError:
                self.logger.warning("cache_entry_corrupt", key=key)
            else:
                self.logger.debug("cache_hit", key=key, page=request.page)
                return self._result(url, payload, request.page, from_cache=True)

        last_error: TransientFetchError | None = None
        for attempt in range(1, self.config.max_attempts + 1):
            self.logger.debug("fetch_attempt", url=redact(url), attempt=attempt)
            try:
                response = self._client.get(url)
            except httpx.HTTPError as exc:
                last_error = TransientFetchError(str(exc) or type(exc).__name__, url=redact(url))
            else:
                if self._is_retryable(response.status_code):
                    last_error = TransientFetchError(
                        f"Unexpected status {response.status_code}",
                        url=redact(url),
                        status_code=response.status_code,
                    )
                elif not response.is_success:
                    self.logger.error(
                        "fetch_rejected", url=redact(url), status=response.status_code
                    )
                    raise PermanentFetchError(
                        f"Request rejected with status {response.status_code}",
                        url=redact(url),
                        status_code=response.status_code,
                    )
                else:
                    payload = self._decode(response, url)
                    self.cache.put(key, response.text, self.config.cache_ttl_seconds)
                    return self._result(url, payload, request.page)

            if attempt < self.config.max_attempts:
                delay = self.backoff_delay(attempt)
                self.logger.warning(
                    "fetch_retry",
                    url=redact(url),
                    attempt=attempt,
                    delay=delay,
                    error=str(last_error),
                )
                time.sleep(delay)

        self.logger.error(
            "fetch_abandoned",
            url=redact(url),
            attempts=self.config.max_attempts,
            error=str(last_error),
        )
        raise last_error  # type: ignore[misc]

    def paginate(self, request: SearchRequest, max_pages: int | None = None) -> Iterator[FetchResult]:
        """Yield successive pages until no continuation remains or the cap is hit."""

        limit = max_pages or self.search.max_pages
        current: SearchRequest | None = request
        while current is not None and current.page <= limit:
            result = self.fetch(current)
            yield result
            current = next_page(current, result.next_url) if result.next_url else None

    def backoff_delay(self, attempt: int) -> float:
        return min(self.config.base_delay * (2 ** (attempt - 1)), self.config.max_delay)

    # ------------------------------------------------------------------
    def _decode(self, response: httpx.Response, url: str) -> dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as exc:
            raise MalformedResponseError(
                "Response body is not JSON", url=redact(url), status_code=response.status_code
            ) from exc
        if not isinstance(payload, dict):
            raise MalformedResponseError(
                "Response body is not a JSON object", url=redact(url), status_code=response.status_code
            )
        if payload.get("error"):
            self.logger.error("api_error", url=redact(url), error=payload["error"])
            raise PermanentFetchError(
                str(payload["error"]), url=redact(url), status_code=response.status_code
            )
        return payload

    def _result(
        self, url: str, payload: dict[str, Any], page: int, from_cache: bool = False
    ) -> FetchResult:
        return FetchResult(
            url=redact(url),
            payload=payload,
            page=page,
            next_url=self._next_url(payload),
            from_cache=from_cache,
        )

    @staticmethod
    def _next_url(payload: dict[str, Any]) -> str | None:
        for section in ("serpapi_pagination", "pagination"):
            block = payload.get(section)
            if isinstance(block, dict) and block.get("next"):
                return str(block["next"])
        return None

    @staticmethod
    def _is_retryable(status_code: int) -> bool:
        return status_code == 429 or status_code >= 500


__all__ = ["FetchResult", "Fetcher", "redact"]
