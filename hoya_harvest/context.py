"""Per-run bundle of configuration, credential, stores and engine parts."""

from __future__ import annotations

from dataclasses import dataclass

import httpx
import structlog

from .config import GlobalConfig
from .engine import Fetcher, RelevanceFilter, RequestBuilder, ResultClassifier
from .infra import CacheBackend, SheetStore, Workbook, resolve_credential
from .logging_conf import component_logger


@dataclass
class RunContext:
    """Everything one collection run or harvest invocation needs, built once."""

    config: GlobalConfig
    workbook: Workbook
    credential: str
    cache: CacheBackend
    fetcher: Fetcher
    builder: RequestBuilder
    classifier: ResultClassifier
    logger: structlog.BoundLogger

    @classmethod
    def build(
        cls,
        config: GlobalConfig,
        workbook: Workbook,
        *,
        cache: CacheBackend | None = None,
        client: httpx.Client | None = None,
        credential: str | None = None,
    ) -> "RunContext":
        logger = component_logger("run")
        api_key = credential or resolve_credential(config.api_key, workbook.properties)
        cache = cache if cache is not None else workbook.cache
        fetcher = Fetcher(
            config.search,
            config.fetch,
            cache,
            logger=component_logger("fetcher"),
            client=client,
        )
        classifier = ResultClassifier(
            RelevanceFilter(config.relevance),
            logger=component_logger("classifier"),
        )
        return cls(
            config=config,
            workbook=workbook,
            credential=api_key,
            cache=cache,
            fetcher=fetcher,
            builder=RequestBuilder(config.search, config.relevance, api_key),
            classifier=classifier,
            logger=logger,
        )

    @property
    def entities(self) -> SheetStore:
        return self.workbook.sheet(self.config.sheets.entities)

    @property
    def results(self) -> SheetStore:
        return self.workbook.sheet(self.config.sheets.results)

    @property
    def metrics(self) -> SheetStore:
        return self.workbook.sheet(self.config.sheets.metrics)

    def close(self) -> None:
        self.fetcher.close()


__all__ = ["RunContext"]
