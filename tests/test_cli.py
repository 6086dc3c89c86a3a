from __future__ import annotations

from typing import Any, Dict, List

import pytest
from typer.testing import CliRunner

from cli.app import app
from settings import get_settings


class StubClient:
    def __init__(self, config) -> None:
        self.config = config
        self.sent: List[Dict[str, Any]] = []
        self.closed = False

    def send_reading(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.sent.append(dict(payload))
        return {
            "success": True,
            "message": "Data stored successfully",
            "device_id": payload.get("device_id", "MXCHIP_001"),
            "timestamp": payload["timestamp"],
        }

    def health(self) -> Dict[str, Any]:
        return {
            "status": "healthy",
            "timestamp": "2026-01-01T00:00:00+00:00",
            "store_url": "https://example-db.test",
            "auth_mode": "store-rules-only",
        }

    def test_store(self) -> Dict[str, Any]:
        return {"success": True, "path": "test", "status_code": 200}

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


def _install_stub(monkeypatch, stub: StubClient) -> None:
    def factory(config):
        stub.config = config
        return stub

    monkeypatch.setattr("cli.app.ApiClient", factory)


def test_send_posts_reading(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(
        app,
        [
            "--base-url",
            "http://proxy.local:3000/",
            "send",
            "--device-id",
            "D1",
            "--temperature",
            "22.5",
            "--humidity",
            "40",
            "--timestamp",
            "1000",
        ],
    )

    assert result.exit_code == 0
    assert "Reading Accepted" in result.stdout
    assert "device_id: D1" in result.stdout
    assert stub.sent == [
        {"temperature": 22.5, "humidity": 40.0, "timestamp": 1000, "device_id": "D1"}
    ]
    assert stub.config.base_url == "http://proxy.local:3000"
    assert stub.closed is True


def test_send_defaults_timestamp_to_now(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)
    monkeypatch.delenv("CLI_DEVICE_ID", raising=False)

    result = runner.invoke(app, ["send", "-t", "20", "-H", "30"])

    assert result.exit_code == 0
    assert stub.sent[0]["timestamp"] > 1_600_000_000_000
    assert "device_id" not in stub.sent[0]


def test_health_command(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["health"])

    assert result.exit_code == 0
    assert "status: healthy" in result.stdout
    assert "store_url: https://example-db.test" in result.stdout
    assert stub.closed is True


def test_store_check_command(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["test-store"])

    assert result.exit_code == 0
    assert "Store Check" in result.stdout
    assert "path: test" in result.stdout


def test_serve_refuses_to_start_without_store_url(monkeypatch, runner: CliRunner) -> None:
    _install_stub(monkeypatch, StubClient(config=None))
    monkeypatch.delenv("STORE_BASE_URL", raising=False)
    monkeypatch.delenv("FIREBASE_DATABASE_URL", raising=False)
    calls: List[Dict[str, Any]] = []
    monkeypatch.setattr("cli.app.uvicorn.run", lambda *args, **kwargs: calls.append(kwargs))
    get_settings.cache_clear()

    try:
        result = runner.invoke(app, ["serve"])
    finally:
        get_settings.cache_clear()

    assert result.exit_code == 1
    assert calls == []


def test_serve_runs_uvicorn_with_configured_port(monkeypatch, runner: CliRunner) -> None:
    _install_stub(monkeypatch, StubClient(config=None))
    monkeypatch.setenv("STORE_BASE_URL", "https://example-db.test")
    monkeypatch.setenv("PORT", "8123")
    calls: List[tuple] = []
    monkeypatch.setattr(
        "cli.app.uvicorn.run", lambda target, **kwargs: calls.append((target, kwargs))
    )
    get_settings.cache_clear()

    try:
        result = runner.invoke(app, ["serve", "--host", "127.0.0.1"])
    finally:
        get_settings.cache_clear()

    assert result.exit_code == 0
    assert "Forwarding telemetry to https://example-db.test" in result.stdout
    assert calls == [("app.main:app", {"host": "127.0.0.1", "port": 8123})]


def test_send_uses_device_id_from_environment(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)
    monkeypatch.setenv("CLI_DEVICE_ID", "BENCH_7")

    result = runner.invoke(app, ["send", "-t", "20", "-H", "30", "--sound", "12"])

    assert result.exit_code == 0
    assert stub.sent[0]["device_id"] == "BENCH_7"
    assert stub.sent[0]["sound"] == 12
