"""Tests for the HTTP trigger surface."""
import pytest
from fastapi.testclient import TestClient

from coverage_sync.api import main as api
from coverage_sync.config import config


class FakeRunner:
    runs = 0

    async def run(self):
        FakeRunner.runs += 1


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(config, "API_KEY", "secret")
    monkeypatch.setattr(api, "build_runner", lambda **kwargs: FakeRunner())
    FakeRunner.runs = 0
    return TestClient(api.app)


def test_health_needs_no_key(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_run_requires_api_key(client):
    assert client.post("/run", json={}).status_code == 403
    assert client.post("/run", json={}, headers={"X-API-KEY": "wrong"}).status_code == 403


def test_run_schedules_background_sync(client):
    response = client.post("/run", json={"dry_run": True}, headers={"X-API-KEY": "secret"})
    assert response.status_code == 202
    assert response.json()["status"] == "scheduled"
    assert FakeRunner.runs == 1
