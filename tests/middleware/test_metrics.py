"""Prometheus metrics middleware and domain counters.

prometheus-client uses one global registry and counters cannot be reset,
so every assertion is on the delta around an action.
"""

from __future__ import annotations

from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from tests.conftest import DIPLOMA_TEXT, b64

VERIFY_ROUTE = "/v1/certificates/{verification_id}/verify"


def _get_sample(name: str, labels: dict | None = None) -> float:
    value = REGISTRY.get_sample_value(name, labels=labels or {})
    return value if value is not None else 0.0


def test_request_counter_increments(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/health", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/health")
    assert _get_sample("http_requests_total", labels) - before == 1


def test_request_duration_histogram_observes(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/v1/stats"}
    before = _get_sample("http_request_duration_seconds_count", labels)
    client.get("/v1/stats")
    assert _get_sample("http_request_duration_seconds_count", labels) - before == 1


def test_endpoint_label_is_route_template(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": VERIFY_ROUTE, "status_code": "404"}
    before = _get_sample("http_requests_total", labels)
    client.get(f"/v1/certificates/{'A' * 22}/verify")
    client.get(f"/v1/certificates/{'B' * 22}/verify")
    assert _get_sample("http_requests_total", labels) - before == 2


def test_unmatched_paths_share_one_label(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "unmatched", "status_code": "404"}
    before = _get_sample("http_requests_total", labels)
    client.get("/no/such/path/1")
    client.get("/no/such/path/2")
    assert _get_sample("http_requests_total", labels) - before == 2


def test_metrics_endpoint_returns_prometheus_format(client: TestClient) -> None:
    client.get("/health")
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "http_requests_total" in resp.text
    assert "certificate_submissions_total" in resp.text


def test_metrics_endpoint_not_self_instrumented(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/metrics", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/metrics")
    client.get("/metrics")
    assert _get_sample("http_requests_total", labels) == before


def test_submission_and_verdict_counters(client: TestClient) -> None:
    issued = _get_sample("certificate_submissions_total", {"status": "issued"})
    duplicate = _get_sample("certificate_submissions_total", {"status": "duplicate"})
    rejected = _get_sample("certificate_submissions_total", {"status": "rejected"})
    authentic = _get_sample("verification_verdicts_total", {"verdict": "authentic"})

    body = {"content_b64": b64(DIPLOMA_TEXT), "format": "text"}
    vid = client.post("/v1/certificates", json=body).json()["verification_id"]
    client.post("/v1/certificates", json=body)
    client.post("/v1/certificates", json={"content_b64": b64("x"), "format": "pdf"})
    client.get(f"/v1/certificates/{vid}/verify")

    assert _get_sample("certificate_submissions_total", {"status": "issued"}) - issued == 1
    assert (
        _get_sample("certificate_submissions_total", {"status": "duplicate"}) - duplicate
        == 1
    )
    assert (
        _get_sample("certificate_submissions_total", {"status": "rejected"}) - rejected
        == 1
    )
    assert (
        _get_sample("verification_verdicts_total", {"verdict": "authentic"}) - authentic
        == 1
    )
