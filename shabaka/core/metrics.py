"""Prometheus metric inventory for the shabaka backend.

Every metric the service exports is declared here; the owning module
imports it and increments at the point of action.  Label values are
kept to small closed sets (provider names, content types, results) so
the series count stays bounded.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP (MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, route template, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 15.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------

PAYMENT_INITS = Counter(
    "payment_inits_total",
    "Checkouts initiated",
    ["provider", "content_type"],  # provider: flouci | stripe-link | offline
)

PAYMENT_VERIFICATIONS = Counter(
    "payment_verifications_total",
    "Payment verification outcomes",
    ["result"],  # paid | already_paid | pending | failed
)

WEBHOOK_EVENTS = Counter(
    "payment_webhook_events_total",
    "Inbound gateway webhooks",
    ["provider", "result"],  # result: accepted | bad_signature | ignored
)

GATEWAY_REQUEST_DURATION = Histogram(
    "payment_gateway_request_duration_seconds",
    "Outbound payment gateway call latency",
    ["provider", "operation"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 15.0],
)

PROMO_REDEMPTIONS = Counter(
    "promo_redemptions_total",
    "Promo code redemptions counted on paid orders",
    ["result"],  # redeemed | cap_reached
)

# ---------------------------------------------------------------------------
# Auth, cache, queue
# ---------------------------------------------------------------------------

TOKEN_BLACKLIST_CHECKS = Counter(
    "token_blacklist_checks_total",
    "Token blacklist lookups by result",
    ["result"],  # revoked | valid
)

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Cache get operations by result",
    ["operation"],  # hit | miss
)

QUEUE_DEPTH = Gauge(
    "task_queue_depth",
    "Number of tasks waiting in a queue",
    ["queue_name"],
)
