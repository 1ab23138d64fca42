"""Health and metrics endpoints of the worker's ops server."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from callreview import main as main_module
from callreview.config.settings import Settings
from callreview.main import create_ops_app
from callreview.telemetry.metrics import observe_claim


class FakeQueue:
    async def counts_by_status(self):
        return {"queued": 2, "processing": 1, "done": 7, "failed": 0}


@pytest.fixture
def settings() -> Settings:
    return Settings(app_name="Call Review Worker", app_version="9.9.9")


def test_health_reports_queue_depth(monkeypatch: pytest.MonkeyPatch, settings):
    async def fake_ping(engine):
        return True

    monkeypatch.setattr(main_module, "ping", fake_ping)
    client = TestClient(create_ops_app(settings, engine=object(), queue=FakeQueue()))

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "healthy",
        "service": "Call Review Worker",
        "version": "9.9.9",
        "jobs": {"queued": 2, "processing": 1, "done": 7, "failed": 0},
    }


def test_health_returns_503_when_database_is_down(monkeypatch: pytest.MonkeyPatch, settings):
    async def failing_ping(engine):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    monkeypatch.setattr(main_module, "ping", failing_ping)
    client = TestClient(create_ops_app(settings, engine=object(), queue=FakeQueue()))

    response = client.get("/health")

    assert response.status_code == 503
    assert response.json()["status"] == "unhealthy"


def test_metrics_exposes_worker_counters(settings):
    observe_claim("analyze")
    client = TestClient(create_ops_app(settings, engine=object(), queue=FakeQueue()))

    response = client.get("/metrics")

    assert response.status_code == 200
    assert 'callreview_jobs_claimed_total{stage="analyze"}' in response.text
