"""Tests for Prometheus metrics.

The prometheus-client default registry is global and counters only go
up, so every test asserts on the DELTA between a reading taken before
the action and one taken after.
"""

from __future__ import annotations

from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from tests.conftest import auth


def _get_sample(name: str, labels: dict | None = None) -> float:
    value = REGISTRY.get_sample_value(name, labels=labels or {})
    return value if value is not None else 0.0


def test_request_counter_increments(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/health", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/health")
    after = _get_sample("http_requests_total", labels)
    assert after - before >= 1


def test_request_duration_histogram_observes(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/health"}
    before = _get_sample("http_request_duration_seconds_count", labels)
    client.get("/health")
    after = _get_sample("http_request_duration_seconds_count", labels)
    assert after - before >= 1


def test_metrics_endpoint_returns_prometheus_format(client: TestClient) -> None:
    client.get("/health")
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "http_requests_total" in resp.text
    assert "module_completions" in resp.text


def test_metrics_endpoint_not_self_instrumented(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/metrics", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/metrics")
    client.get("/metrics")
    assert _get_sample("http_requests_total", labels) == before


def test_completion_outcomes_are_counted(client: TestClient, token: str) -> None:
    advanced_before = _get_sample("module_completions_total", {"result": "advanced"})
    noop_before = _get_sample("module_completions_total", {"result": "noop"})

    client.post("/v1/modules/1/complete", headers=auth(token))
    client.post("/v1/modules/1/complete", headers=auth(token))

    advanced = _get_sample("module_completions_total", {"result": "advanced"})
    noop = _get_sample("module_completions_total", {"result": "noop"})
    assert advanced - advanced_before == 1
    assert noop - noop_before == 1
