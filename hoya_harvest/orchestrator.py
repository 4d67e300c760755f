"""Collection run wiring request building, fetching, classification, dedup and metrics."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, Mapping, Sequence

from .context import RunContext
from .engine import Deduplicator, DeduplicationResult, ObservationAccumulator, SearchRequest, aggregate
from .entities import annotate, load_targets
from .errors import FetchError
from .infra.sheets import SheetStore
from .models import METRICS_HEADER, RESULT_HEADER, ResultRecord, SearchTarget
from .ui import ProgressReporter

RESULT_HEADER_ROWS = 1
STATUS_OK = "ok"

_ENTITY = RESULT_HEADER.index("entity")
_PRICE = RESULT_HEADER.index("price")

Classify = Callable[..., list[ResultRecord]]


@dataclass
class RunSummary:
    entities: int = 0
    failed_entities: int = 0
    records: int = 0
    observations: int = 0
    abandoned_variants: int = 0
    duplicates_dropped: int = 0
    metrics_rows: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


def observations_from_sheet(sheet: SheetStore, header_rows: int = RESULT_HEADER_ROWS) -> dict[str, list[float]]:
    """Rebuild per-entity price observations from the result sheet's price column."""

    observations: dict[str, list[float]] = {}
    for row in sheet.rows(start=header_rows + 1):
        values = row.values
        entity = values[_ENTITY].strip() if len(values) > _ENTITY else ""
        if not entity:
            continue
        bucket = observations.setdefault(entity, [])
        raw = values[_PRICE].strip() if len(values) > _PRICE else ""
        if not raw:
            continue
        try:
            bucket.append(float(raw))
        except ValueError:
            continue
    return observations


class CollectionRun:
    """Drive every entity through the shopping and web variants, then post-process."""

    def __init__(self, context: RunContext, progress: ProgressReporter | None = None) -> None:
        self.context = context
        self.progress = progress or ProgressReporter(enabled=False)
        self.logger = context.logger.bind(component="collection")

    # ------------------------------------------------------------------
    def run(self, limit: int | None = None, append: bool = False) -> RunSummary:
        config = self.context.config
        targets = load_targets(
            self.context.entities,
            config.first_data_row,
            max_name_length=config.relevance.max_name_length,
            limit=limit,
        )
        results = self.context.results
        if not append:
            results.clear()
        if results.last_row() == 0:
            results.write_row(1, RESULT_HEADER)

        summary = RunSummary(entities=len(targets))
        accumulator = ObservationAccumulator()
        self.logger.info("collection_started", entities=len(targets), append=append)
        self.progress.start(len(targets))
        try:
            for target in targets:
                accumulator.register(target.name)
                ok = self.collect_entity(target, accumulator, summary)
                self.progress.advance(success=ok, current=target.name)
        finally:
            self.progress.close()

        summary.observations = len(accumulator)
        summary.duplicates_dropped = self.dedupe().dropped
        summary.metrics_rows = self.write_metrics(accumulator.snapshot(), [t.name for t in targets])
        self.logger.info("collection_finished", **summary.as_dict())
        return summary

    def collect_entity(
        self,
        target: SearchTarget,
        accumulator: ObservationAccumulator,
        summary: RunSummary,
    ) -> bool:
        """Run both query variants for one entity; failures land in its status cell."""

        builder = self.context.builder
        classifier = self.context.classifier
        try:
            keywords = builder.keywords_for(target.name)
            variants: list[tuple[Callable[[SearchTarget], SearchRequest], Classify]] = [
                (builder.shopping, classifier.classify_listing),
                (builder.web, classifier.classify_web),
            ]
            for build, classify in variants:
                request = build(target)
                try:
                    self._drain(request, target, keywords, classify, accumulator, summary)
                except FetchError as exc:
                    summary.abandoned_variants += 1
                    self.logger.warning(
                        "variant_abandoned",
                        entity=target.name,
                        engine=request.engine.value,
                        error=str(exc),
                        status_code=exc.status_code,
                    )
        except Exception as exc:
            summary.failed_entities += 1
            self.logger.error("entity_failed", entity=target.name, row=target.row_index, error=str(exc))
            annotate(self.context.entities, target, f"error: {exc}")
            return False
        annotate(self.context.entities, target, STATUS_OK)
        return True

    def _drain(
        self,
        request: SearchRequest,
        target: SearchTarget,
        keywords: Sequence[str],
        classify: Classify,
        accumulator: ObservationAccumulator,
        summary: RunSummary,
    ) -> int:
        """Append each page as it arrives; its prices are observed in the same step."""

        drained = 0
        stamp = datetime.now(timezone.utc).isoformat(timespec="seconds")
        for page in self.context.fetcher.paginate(request):
            records = classify(page.payload, target, keywords, query=request.query, collected_at=stamp)
            if records:
                self.context.results.append_rows(record.to_row() for record in records)
                for record in records:
                    accumulator.add_value(target.name, record.price)
                summary.records += len(records)
                drained += len(records)
            self.logger.debug(
                "page_classified",
                entity=target.name,
                engine=request.engine.value,
                page=page.page,
                records=len(records),
                from_cache=page.from_cache,
            )
        return drained

    # ------------------------------------------------------------------
    def dedupe(self) -> DeduplicationResult:
        result = Deduplicator(header_rows=RESULT_HEADER_ROWS).dedupe_sheet(self.context.results)
        self.logger.info("dedupe_complete", kept=result.kept - RESULT_HEADER_ROWS, dropped=result.dropped)
        return result

    def write_metrics(self, observations: Mapping[str, Iterable[float]], entities: Iterable[str] = ()) -> int:
        rows = aggregate(observations, entities)
        self.context.metrics.rewrite([METRICS_HEADER] + [row.to_row() for row in rows])
        self.logger.info("metrics_written", entities=len(rows))
        return len(rows)

    def recompute_metrics(self) -> int:
        """Rebuild the metrics sheet from whatever the result sheet holds now."""

        config = self.context.config
        names = [
            target.name
            for target in load_targets(
                self.context.entities,
                config.first_data_row,
                max_name_length=config.relevance.max_name_length,
            )
        ]
        return self.write_metrics(observations_from_sheet(self.context.results), names)


__all__ = ["CollectionRun", "RunSummary", "observations_from_sheet"]
