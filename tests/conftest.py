"""Shared fixtures: temporary home, config builder, workbook and fake transport."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Iterable
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from hoya_harvest.config import ConfigLocator, ConfigRepository, GlobalConfig
from hoya_harvest.context import RunContext
from hoya_harvest.infra import InMemoryCache, SQLiteManager, Workbook

API_KEY = "abcdef0123456789ABCDEF0123456789"


class RecordingLogger:
    """Stand-in for a bound structlog logger that keeps every event."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, dict[str, Any]]] = []

    def bind(self, **_kwargs: Any) -> "RecordingLogger":
        return self

    def _record(self, level: str, event: str, **kwargs: Any) -> None:
        self.events.append((level, event, kwargs))

    def debug(self, event: str, **kwargs: Any) -> None:
        self._record("debug", event, **kwargs)

    def info(self, event: str, **kwargs: Any) -> None:
        self._record("info", event, **kwargs)

    def warning(self, event: str, **kwargs: Any) -> None:
        self._record("warning", event, **kwargs)

    def error(self, event: str, **kwargs: Any) -> None:
        self._record("error", event, **kwargs)

    def named(self, event: str) -> list[dict[str, Any]]:
        return [fields for _, name, fields in self.events if name == event]


class CountingCache(InMemoryCache):
    """In-memory cache that counts writes."""

    def __init__(self) -> None:
        super().__init__()
        self.writes = 0

    def put(self, key: str, value: str, ttl: int) -> None:
        self.writes += 1
        super().put(key, value, ttl)


def query_of(request: httpx.Request) -> dict[str, str]:
    return {key: values[0] for key, values in parse_qs(urlsplit(str(request.url)).query).items()}


def json_response(payload: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, text=json.dumps(payload), headers={"Content-Type": "application/json"})


@pytest.fixture
def api_key() -> str:
    return API_KEY


@pytest.fixture
def harvest_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("HOYA_HARVEST_HOME", str(tmp_path))
    monkeypatch.delenv("SERPAPI_API_KEY", raising=False)
    return tmp_path


@pytest.fixture
def config_repository(harvest_home: Path) -> ConfigRepository:
    return ConfigRepository(ConfigLocator(project_root=harvest_home))


@pytest.fixture
def config_builder(tmp_path: Path) -> Callable[..., GlobalConfig]:
    """Build a config with delays zeroed so tests never wait."""

    def _builder(**overrides: Any) -> GlobalConfig:
        base: dict[str, Any] = {
            "database_path": tmp_path / "harvest.db",
            "outputs_dir": tmp_path / "outputs",
            "fetch": {"max_attempts": 4, "base_delay": 0.0, "max_delay": 0.0},
            "trends": {"batch_size": 2, "politeness_delay": 0.0, "rearm_delay_seconds": 60},
        }
        for key, value in overrides.items():
            if isinstance(value, dict) and isinstance(base.get(key), dict):
                base[key] = {**base[key], **value}
            else:
                base[key] = value
        return GlobalConfig.model_validate(base)

    return _builder


@pytest.fixture
def workbook(tmp_path: Path) -> Iterable[Workbook]:
    manager = SQLiteManager()
    yield Workbook(manager, tmp_path / "workbook.db")
    manager.close_all()


@pytest.fixture
def mock_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.Client]:
    clients: list[httpx.Client] = []

    def _factory(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.Client:
        client = httpx.Client(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield _factory
    for client in clients:
        client.close()


@pytest.fixture
def sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    """Record fetcher backoff sleeps instead of waiting."""

    recorded: list[float] = []
    monkeypatch.setattr("hoya_harvest.engine.fetcher.time.sleep", recorded.append)
    return recorded


@pytest.fixture
def run_context(
    config_builder: Callable[..., GlobalConfig],
    workbook: Workbook,
    mock_client,
    sleeps: list[float],
) -> Callable[..., RunContext]:
    def _builder(
        handler: Callable[[httpx.Request], httpx.Response],
        config: GlobalConfig | None = None,
        cache: InMemoryCache | None = None,
    ) -> RunContext:
        return RunContext.build(
            config or config_builder(),
            workbook,
            cache=cache or InMemoryCache(),
            client=mock_client(handler),
            credential=API_KEY,
        )

    return _builder


def seed_entities(workbook: Workbook, names: Iterable[str | tuple[str, str]], header_rows: int = 2) -> None:
    sheet = workbook.sheet("entities")
    rows: list[list[str]] = [["name", "identifier", "status"]]
    while len(rows) < header_rows:
        rows.append(["", "", ""])
    for entry in names:
        name, identifier = entry if isinstance(entry, tuple) else (entry, "")
        rows.append([name, identifier, ""])
    sheet.rewrite(rows)
