"""Тесты health endpoints."""
import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def client():
    from apps.backend.main import app
    return TestClient(app)


def test_health(client: TestClient):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json().get("status") == "ok"
    assert r.json().get("service") == "voicedesk"


def test_health_sets_trace_id_header(client: TestClient):
    r = client.get("/health")
    assert r.headers.get("X-Trace-Id")
