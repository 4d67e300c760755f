from __future__ import annotations

import warnings

import httpx
import pytest
from typer.testing import CliRunner

from conftest import API_KEY, json_response, query_of, seed_entities
from hoya_harvest.app import AppState, app
from hoya_harvest.infra import SQLiteManager, Workbook


def search_api(request: httpx.Request) -> httpx.Response:
    params = query_of(request)
    if params["engine"] == "google_shopping":
        return json_response(
            {"shopping_results": [{"title": "Hoya kerrii heart", "extracted_price": 12.5, "product_id": "1"}]}
        )
    if params["engine"] == "google_trends":
        return json_response({"interest_over_time": {"timeline_data": [{"values": [{"value": "3"}]}]}})
    return json_response({})


@pytest.fixture
def state(monkeypatch, config_repository, config_builder, mock_client, sleeps) -> AppState:
    config = config_builder()
    config_repository.save_global_config(config)
    storage = SQLiteManager()
    app_state = AppState(
        repository=config_repository,
        config=config,
        storage=storage,
        workbook=Workbook(storage, config.database_path),
        client=mock_client(search_api),
    )
    monkeypatch.setattr("hoya_harvest.app.build_state", lambda verbose: app_state)
    yield app_state
    storage.close_all()


def test_entities_import_and_list(state: AppState, tmp_path) -> None:
    source = tmp_path / "hoyas.txt"
    source.write_text("Hoya kerrii\nHoya linearis\n", encoding="utf-8")
    runner = CliRunner()

    result = runner.invoke(app, ["entities", "import", str(source)])
    assert result.exit_code == 0, result.stdout
    assert "Imported 2 entities" in result.stdout

    result = runner.invoke(app, ["entities", "list"])
    assert result.exit_code == 0, result.stdout
    assert "Hoya kerrii" in result.stdout
    assert "Hoya linearis" in result.stdout


def test_collect_run_prints_summary(state: AppState, monkeypatch) -> None:
    monkeypatch.setenv("SERPAPI_API_KEY", API_KEY)
    seed_entities(state.workbook, ["Hoya kerrii"])

    result = CliRunner().invoke(app, ["collect", "run", "--limit", "1"])

    assert result.exit_code == 0, result.stdout
    assert "Collection summary" in result.stdout
    assert state.workbook.sheet("results").last_row() == 2
    assert state.workbook.sheet("entities").row(3)[2] == "ok"


def test_collect_run_without_credential_exits(state: AppState) -> None:
    result = CliRunner().invoke(app, ["collect", "run"])
    assert result.exit_code == 2
    assert "Cannot start" in result.stdout


def test_collect_metrics_and_dedupe(state: AppState, monkeypatch) -> None:
    monkeypatch.setenv("SERPAPI_API_KEY", API_KEY)
    seed_entities(state.workbook, ["Hoya kerrii"])
    runner = CliRunner()
    runner.invoke(app, ["collect", "run"])

    result = runner.invoke(app, ["collect", "dedupe"])
    assert result.exit_code == 0, result.stdout
    assert "Dropped 0 duplicate rows" in result.stdout

    result = runner.invoke(app, ["collect", "metrics"])
    assert result.exit_code == 0, result.stdout
    assert "Wrote metrics for 1 entities" in result.stdout


def test_trends_run_status_and_reset(state: AppState, monkeypatch) -> None:
    monkeypatch.setenv("SERPAPI_API_KEY", API_KEY)
    seed_entities(state.workbook, ["Hoya kerrii", "Hoya linearis", "Hoya obovata"])
    runner = CliRunner()

    result = runner.invoke(app, ["trends", "run"])
    assert result.exit_code == 0, result.stdout
    assert "more remain" in result.stdout

    result = runner.invoke(app, ["trends", "status"])
    assert result.exit_code == 0, result.stdout
    assert "90d" in result.stdout
    assert "5" in result.stdout

    result = runner.invoke(app, ["trends", "reset"])
    assert result.exit_code == 0, result.stdout
    assert "Cleared 1 cursors" in result.stdout


def test_export_sheet_to_csv(state: AppState) -> None:
    seed_entities(state.workbook, ["Hoya kerrii"], header_rows=1)
    result = CliRunner().invoke(app, ["export", "entities", "--format", "csv"])
    assert result.exit_code == 0, result.stdout
    exported = list(state.repository.outputs_dir().glob("entities-*.csv"))
    assert len(exported) == 1
    lines = exported[0].read_text(encoding="utf-8").splitlines()
    assert lines == ["name,identifier,status", "Hoya kerrii,,"]


def test_export_unknown_sheet(state: AppState) -> None:
    result = CliRunner().invoke(app, ["export", "nothing"])
    assert result.exit_code == 1


def test_cache_clear(state: AppState) -> None:
    state.workbook.cache.put("web:abc", "{}", ttl=60)
    result = CliRunner().invoke(app, ["cache", "clear"])
    assert result.exit_code == 0, result.stdout
    assert "Removed 1 cache entries" in result.stdout


def test_log_show(state: AppState) -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["log", "show"])
    assert "No log entries yet" in result.stdout

    log_file = state.log_dir / "harvest.log"
    log_file.write_text('{"event": "one"}\n{"event": "two"}\n', encoding="utf-8")
    result = runner.invoke(app, ["log", "show", "--tail", "1"])
    assert result.exit_code == 0, result.stdout
    assert '"two"' in result.stdout
    assert '"one"' not in result.stdout


def test_trends_watch_runs_every_phase_to_completion(state: AppState, monkeypatch) -> None:
    monkeypatch.setenv("SERPAPI_API_KEY", API_KEY)
    trends = state.config.trends.model_copy(update={"rearm_delay_seconds": 0.0})
    state.config = state.config.model_copy(update={"trends": trends})
    seed_entities(state.workbook, ["Hoya kerrii", "Hoya linearis", "Hoya obovata"])

    result = CliRunner().invoke(app, ["trends", "watch"])

    assert result.exit_code == 0, result.stdout
    assert "Harvest complete." in result.stdout
    for label in ("90d", "180d", "365d"):
        rows = state.workbook.sheet(f"trends_{label}").values()[2:]
        assert [row[0] for row in rows] == ["Hoya kerrii", "Hoya linearis", "Hoya obovata"]
        assert all(row[-1] == "3" for row in rows)


def test_boolean_options_are_plain_flags(state: AppState) -> None:
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        result = CliRunner().invoke(app, ["collect", "run", "--help"])
    assert result.exit_code == 0, result.stdout
    assert "--append" in result.stdout
    assert not [w for w in caught if "is_flag" in str(w.message)]
