"""Typer CLI entrypoint for hoya-harvest."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import httpx
import typer
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository, GlobalConfig
from .context import RunContext
from .engine.exporter import FileExporter
from .entities import import_entities, load_targets
from .errors import HarvestError
from .infra import SQLiteManager, Workbook
from .logging_conf import configure_logging, harvest_log_path, tail_log
from .orchestrator import CollectionRun, RunSummary
from .scheduler import APSchedulerAdapter
from .trends import TrendHarvester
from .ui import ProgressReporter

app = typer.Typer(help="hoya-harvest command line", no_args_is_help=True, rich_markup_mode=None)
entities_app = typer.Typer(name="entities", help="Entity sheet commands", no_args_is_help=True)
collect_app = typer.Typer(name="collect", help="Price collection commands", no_args_is_help=True)
trends_app = typer.Typer(name="trends", help="Interest-over-time harvest commands", no_args_is_help=True)
cache_app = typer.Typer(name="cache", help="Response cache commands", no_args_is_help=True)
log_app = typer.Typer(name="log", help="Log viewing commands", no_args_is_help=True)

app.add_typer(entities_app, name="entities")
app.add_typer(collect_app, name="collect")
app.add_typer(trends_app, name="trends")
app.add_typer(cache_app, name="cache")
app.add_typer(log_app, name="log")

console = Console()

WATCH_POLL_SECONDS = 1.0


@dataclass
class AppState:
    repository: ConfigRepository
    config: GlobalConfig
    storage: SQLiteManager
    workbook: Workbook
    client: httpx.Client | None = None

    @property
    def log_dir(self) -> Path:
        return self.repository.locator.logs_dir

    def context(self) -> RunContext:
        return RunContext.build(self.config, self.workbook, client=self.client)


def build_state(verbose: bool = False) -> AppState:
    repository = ConfigRepository()
    configure_logging(verbose=verbose, log_dir=repository.locator.logs_dir)
    config = repository.load_global_config()
    storage = SQLiteManager()
    workbook = Workbook(storage, repository.database_path())
    return AppState(repository=repository, config=config, storage=storage, workbook=workbook)


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _open_context(state: AppState) -> RunContext:
    try:
        return state.context()
    except HarvestError as exc:
        console.print(f"Cannot start: {exc}", style="red")
        raise typer.Exit(code=2) from exc


def _render_summary(summary: RunSummary) -> Table:
    table = Table(title="Collection summary", box=box.SIMPLE_HEAD)
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", style="green", justify="right")
    for key, value in summary.as_dict().items():
        table.add_row(key.replace("_", " "), str(value))
    return table


def _progress_default_enabled(state: AppState) -> bool:
    return state.config.enable_progress_bar and console.is_terminal


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
) -> None:
    if ctx.obj is None:
        ctx.obj = build_state(verbose)


# ----------------------------------------------------------------------
@entities_app.command("import", help="Replace the entity sheet with names from a txt or csv file.")
def entities_import(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
) -> None:
    state = _get_state(ctx)
    sheet = state.workbook.sheet(state.config.sheets.entities)
    count = import_entities(sheet, path, state.config.header_rows)
    console.print(f"Imported {count} entities into '{sheet.name}'.", style="green")


@entities_app.command("list", help="Show the entity sheet with each row's last status.")
def entities_list(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    sheet = state.workbook.sheet(state.config.sheets.entities)
    targets = load_targets(sheet, state.config.first_data_row, state.config.relevance.max_name_length)
    if not targets:
        console.print("No entities yet; use `hoya-harvest entities import FILE`.", style="yellow")
        raise typer.Exit(code=0)
    table = Table(title=f"Entities · {len(targets)}", box=box.SIMPLE_HEAD)
    table.add_column("Row", justify="right", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Identifier", style="magenta")
    table.add_column("Status", style="green", overflow="fold")
    for target in targets:
        values = sheet.row(target.row_index) or []
        status = values[2] if len(values) > 2 else ""
        table.add_row(str(target.row_index), target.name, target.identifier, status)
    console.print(table)


# ----------------------------------------------------------------------
@collect_app.command("run", help="Query every entity, then dedupe results and rebuild metrics.")
def collect_run(
    ctx: typer.Context,
    limit: Optional[int] = typer.Option(None, "--limit", min=1, help="Only process the first N entities."),
    append: bool = typer.Option(False, "--append", help="Keep existing result rows."),
) -> None:
    state = _get_state(ctx)
    context = _open_context(state)
    progress = ProgressReporter(enabled=_progress_default_enabled(state), console=console)
    try:
        summary = CollectionRun(context, progress=progress).run(limit=limit, append=append)
    finally:
        context.close()
    console.print(_render_summary(summary))


@collect_app.command("dedupe", help="Drop duplicate rows from the result sheet.")
def collect_dedupe(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    context = _open_context(state)
    try:
        result = CollectionRun(context).dedupe()
    finally:
        context.close()
    console.print(f"Dropped {result.dropped} duplicate rows.", style="green")


@collect_app.command("metrics", help="Recompute the metrics sheet from the result sheet.")
def collect_metrics(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    context = _open_context(state)
    try:
        count = CollectionRun(context).recompute_metrics()
    finally:
        context.close()
    console.print(f"Wrote metrics for {count} entities.", style="green")


# ----------------------------------------------------------------------
@trends_app.command("run", help="Run one harvest invocation (the re-trigger entry point).")
def trends_run(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    context = _open_context(state)
    try:
        result = TrendHarvester(context).invoke()
    finally:
        context.close()
    processed = sum(batch.processed for batch in result.batches)
    if result.remaining:
        console.print(
            f"Phase {result.phase}: processed {processed} entities, more remain. Run again to resume.",
            style="yellow",
        )
    else:
        console.print(f"Harvest complete; processed {processed} entities.", style="green")


@trends_app.command("watch", help="Invoke the harvest and keep re-arming until every phase is done.")
def trends_watch(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    context = _open_context(state)
    timer = APSchedulerAdapter()
    harvester = TrendHarvester(context, timer=timer)
    timer.start()
    try:
        harvester.invoke()
        while not harvester.settled.wait(WATCH_POLL_SECONDS):
            continue
    except KeyboardInterrupt:
        console.print("Interrupted; the cursor is saved, `trends run` resumes.", style="yellow")
    finally:
        timer.shutdown(wait=True)
        context.close()
    status = harvester.status()
    if status["active_phase"] is None:
        console.print("Harvest complete.", style="green")


@trends_app.command("status", help="Show the active phase and saved cursors.")
def trends_status(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    context = _open_context(state)
    try:
        status = TrendHarvester(context).status()
    finally:
        context.close()
    table = Table(title=f"Trend harvest · active phase: {status['active_phase'] or '-'}", box=box.SIMPLE_HEAD)
    table.add_column("Phase", style="cyan")
    table.add_column("Next row", style="green", justify="right")
    for label, next_row in status["cursors"].items():
        table.add_row(label, "-" if next_row is None else str(next_row))
    console.print(table)
    console.print(f"Entities: {status['entities']}", style="dim")


@trends_app.command("reset", help="Forget every saved cursor and the active phase.")
def trends_reset(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    context = _open_context(state)
    try:
        removed = TrendHarvester(context).reset()
    finally:
        context.close()
    console.print(f"Cleared {removed} cursors.", style="green")


# ----------------------------------------------------------------------
@app.command("export", help="Write a sheet to outputs/ as CSV or JSON lines.")
def export_sheet(
    ctx: typer.Context,
    sheet_name: str = typer.Argument(..., metavar="SHEET"),
    fmt: str = typer.Option("csv", "--format", help="csv or json"),
) -> None:
    state = _get_state(ctx)
    if fmt not in ("csv", "json"):
        raise typer.BadParameter("format must be csv or json", param_hint="--format")
    if sheet_name not in state.workbook.sheet_names():
        console.print(f"Sheet '{sheet_name}' is empty or does not exist.", style="yellow")
        raise typer.Exit(code=1)
    values = state.workbook.sheet(sheet_name).values()
    header, rows = values[0], values[1:]
    exporter = FileExporter(state.repository.outputs_dir(), sheet_name, fmt)
    try:
        count = exporter.export_rows(header, rows)
        exporter.flush()
    finally:
        exporter.close()
    console.print(f"Exported {count} rows to {exporter.path}", style="green")


@cache_app.command("clear", help="Drop cached API responses.")
def cache_clear(
    ctx: typer.Context,
    expired: bool = typer.Option(False, "--expired", help="Only drop expired entries."),
) -> None:
    state = _get_state(ctx)
    removed = state.workbook.cache.purge(expired_only=expired)
    console.print(f"Removed {removed} cache entries.", style="green")


@log_app.command("show", help="Show the most recent lines of the harvest log.")
def log_show(
    ctx: typer.Context,
    tail: int = typer.Option(100, "--tail", min=1, help="Number of lines."),
) -> None:
    state = _get_state(ctx)
    lines = tail_log(harvest_log_path(state.log_dir), tail)
    if not lines:
        console.print("No log entries yet.", style="dim")
        return
    console.print(f"Harvest log · last {len(lines)} lines", style="cyan")
    console.print("".join(lines), markup=False, highlight=False)


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
