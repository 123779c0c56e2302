"""Tests for the Prometheus metrics middleware.

The default registry is global and counters only go up, so counter
assertions read the value before and after the action and check the
delta.
"""

from __future__ import annotations

import asyncio

from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from shabaka.container import Container
from shabaka.services.task_queue import NOTIFICATIONS_QUEUE
from tests.conftest import COURSE_ID, auth_header


def _get_sample(name: str, labels: dict | None = None) -> float:
    value = REGISTRY.get_sample_value(name, labels=labels or {})
    return value if value is not None else 0.0


def test_request_counter_increments(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/health", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/health")
    assert _get_sample("http_requests_total", labels) - before >= 1


def test_request_duration_histogram_observes(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/health"}
    before = _get_sample("http_request_duration_seconds_count", labels)
    client.get("/health")
    assert _get_sample("http_request_duration_seconds_count", labels) - before >= 1


def test_endpoint_label_is_route_template(client: TestClient, token: str) -> None:
    labels = {
        "method": "GET",
        "endpoint": "/tracking/{content_type}/{content_id}",
        "status_code": "404",
    }
    before = _get_sample("http_requests_total", labels)
    client.get(f"/tracking/course/{COURSE_ID}", headers=auth_header(token))
    client.get("/tracking/course/other", headers=auth_header(token))
    assert _get_sample("http_requests_total", labels) - before == 2


def test_unmatched_paths_collapse(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "<unmatched>", "status_code": "404"}
    before = _get_sample("http_requests_total", labels)
    client.get("/no/such/thing")
    assert _get_sample("http_requests_total", labels) - before == 1


def test_payment_init_counter(client: TestClient, token: str) -> None:
    labels = {"provider": "flouci", "content_type": "course"}
    before = _get_sample("payment_inits_total", labels)
    client.post("/payments/init/course", json={"courseId": COURSE_ID}, headers=auth_header(token))
    assert _get_sample("payment_inits_total", labels) - before == 1


def test_metrics_endpoint_returns_prometheus_format(client: TestClient) -> None:
    client.get("/health")
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "http_requests_total" in resp.text
    assert "payment_inits_total" in resp.text


def test_metrics_endpoint_not_self_instrumented(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/metrics", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/metrics")
    client.get("/metrics")
    assert _get_sample("http_requests_total", labels) == before


def test_scrape_reports_notification_queue_depth(client: TestClient, container: Container) -> None:
    asyncio.run(container.notifications.enqueue(NOTIFICATIONS_QUEUE, "payment_receipt", {}))
    asyncio.run(container.notifications.enqueue(NOTIFICATIONS_QUEUE, "payment_receipt", {}))
    client.get("/metrics")
    assert _get_sample("task_queue_depth", {"queue_name": NOTIFICATIONS_QUEUE}) == 2
