"""Tests for application entry point: structlog config, service initialization, and app creation."""

from __future__ import annotations

import inspect
from pathlib import Path
from typing import Any

import pytest
import structlog
from fastapi import FastAPI
from fastapi.testclient import TestClient

from resonance.app import configure_logging, create_app, initialize_services
from resonance.audit.store import query_audit_trail
from resonance.config import Settings
from resonance.settlement.client import HttpSettlementClient


def _reset_structlog() -> None:
    """Reset structlog so cached loggers don't leak between tests."""
    structlog.reset_defaults()


def _base_settings(tmp_path: Path, **overrides: Any) -> Settings:
    """Build a Settings instance pointing the database to tmp_path.

    The scheduler loop is off and settlement unconfigured unless overridden.
    """
    defaults: dict[str, Any] = {
        "database_path": tmp_path / "resonance.db",
        "scheduler_enabled": False,
    }
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)  # type: ignore[call-arg]


def _close(services: dict[str, Any]) -> None:
    services["audit_conn"].close()
    if services["db_conn"] is not None:
        services["db_conn"].close()


class TestConfigureLogging:
    """Tests for structlog configuration in dev and production modes."""

    def test_development_mode_uses_console_renderer(self) -> None:
        _reset_structlog()
        configure_logging(production=False)
        processors = structlog.get_config()["processors"]
        assert any(isinstance(p, structlog.dev.ConsoleRenderer) for p in processors)

    def test_production_mode_uses_json_renderer(self) -> None:
        _reset_structlog()
        configure_logging(production=True)
        processors = structlog.get_config()["processors"]
        assert any(isinstance(p, structlog.processors.JSONRenderer) for p in processors)

    def test_sentry_processor_added_when_enabled(self) -> None:
        _reset_structlog()
        configure_logging(production=True, sentry_enabled=True)
        processors = structlog.get_config()["processors"]
        assert any(type(p).__name__ == "SentryProcessor" for p in processors)

    def test_default_is_development_mode(self) -> None:
        _reset_structlog()
        configure_logging()
        processors = structlog.get_config()["processors"]
        assert any(isinstance(p, structlog.dev.ConsoleRenderer) for p in processors)


class TestInitializeServices:
    """Tests for service initialization per storage backend."""

    def test_sqlite_backend_creates_database(self, tmp_path: Path) -> None:
        db_path = tmp_path / "nested" / "resonance.db"
        services = initialize_services(_base_settings(tmp_path, database_path=db_path))

        assert db_path.exists()
        assert services["db_conn"] is not None
        assert services["audit_logger"] is not None
        _close(services)

    def test_memory_backend(self, tmp_path: Path) -> None:
        services = initialize_services(_base_settings(tmp_path, storage_backend="memory"))

        assert services["db_conn"] is None
        assert not (tmp_path / "resonance.db").exists()
        _close(services)

    def test_settlement_none_when_unconfigured(self, tmp_path: Path) -> None:
        services = initialize_services(_base_settings(tmp_path))
        assert services["settlement"] is None
        _close(services)

    def test_settlement_client_when_configured(self, tmp_path: Path) -> None:
        services = initialize_services(
            _base_settings(
                tmp_path,
                settlement_url="https://ledger.example",
                settlement_api_key="sk-test",
            )
        )
        assert isinstance(services["settlement"], HttpSettlementClient)
        _close(services)

    def test_fraud_policy_from_settings(self, tmp_path: Path) -> None:
        services = initialize_services(
            _base_settings(tmp_path, max_likes_per_comment="25")
        )
        assert services["fraud_gate"].max_likes_per_comment == 25
        _close(services)


class TestCreateApp:
    """Tests for FastAPI app creation."""

    def test_returns_fastapi_instance(self, tmp_path: Path) -> None:
        services = initialize_services(_base_settings(tmp_path))
        app = create_app(services)

        assert isinstance(app, FastAPI)
        assert app.router.lifespan_context is not None
        assert isinstance(app.state.settings, Settings)
        _close(services)

    def test_no_deprecated_on_event(self) -> None:
        assert "on_event" not in inspect.getsource(create_app)

    def test_routes_registered(self, tmp_path: Path) -> None:
        services = initialize_services(_base_settings(tmp_path))
        app = create_app(services)

        route_paths = {route.path for route in app.routes}
        assert {
            "/campaigns",
            "/campaigns/{campaign_id}/submit",
            "/campaigns/{campaign_id}/verify",
            "/campaigns/{campaign_id}/leaderboard",
            "/health",
            "/ready",
            "/metrics",
        } <= route_paths
        _close(services)


class TestEndToEnd:
    """Full app over the SQLite backend, lifespan included."""

    BODY = {
        "campaignId": "c1",
        "kind": "open",
        "budget": "100",
        "windowStart": "2025-01-01T00:00:00Z",
        "deadline": "2025-01-31T00:00:00Z",
    }

    def test_submission_is_persisted_and_audited(self, tmp_path: Path) -> None:
        services = initialize_services(_base_settings(tmp_path))
        with TestClient(create_app(services)) as client:
            assert client.post("/campaigns", json=self.BODY).status_code == 200
            response = client.post(
                "/campaigns/c1/submit",
                json={
                    "creatorAddress": "0xa",
                    "platform": "youtube",
                    "url": "https://example.com/v",
                    "postId": "v1",
                    "timestamp": "2025-01-02T00:00:00Z",
                    "metrics": {"likes": 10, "views": 1000},
                },
            )
            assert response.status_code == 200
            assert response.headers["X-Request-ID"]

            events = {r["event_type"] for r in query_audit_trail(services["audit_conn"])}

        assert {"campaign_created", "submission_recorded"} <= events

    def test_verify_without_settlement_client_is_bad_gateway(self, tmp_path: Path) -> None:
        services = initialize_services(_base_settings(tmp_path))
        with TestClient(create_app(services)) as client:
            client.post("/campaigns", json=self.BODY)
            client.post(
                "/campaigns/c1/submit",
                json={
                    "creatorAddress": "0xa",
                    "platform": "youtube",
                    "url": "https://example.com/v",
                    "postId": "v1",
                    "timestamp": "2025-01-02T00:00:00Z",
                    "metrics": {"likes": 10, "views": 1000},
                },
            )
            response = client.post("/campaigns/c1/verify")

            assert response.status_code == 502
            assert response.json()["error"] == "SettlementFailure"
            assert client.get("/campaigns/c1").json()["campaign"]["status"] == "verifying"

    @pytest.mark.parametrize("scheduler_enabled", [True, False])
    def test_lifespan_starts_and_stops(self, tmp_path: Path, scheduler_enabled: bool) -> None:
        services = initialize_services(
            _base_settings(
                tmp_path, scheduler_enabled=scheduler_enabled, scheduler_interval_seconds=3600
            )
        )
        with TestClient(create_app(services)) as client:
            assert client.get("/health").status_code == 200
