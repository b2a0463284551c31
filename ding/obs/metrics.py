"""Central registry for Prometheus metrics."""

from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

REQUEST_COUNTER = Counter(
	"ding_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"ding_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

ITEMS_CREATED = Counter(
	"ding_items_created_total",
	"Content items persisted",
	["kind"],
)

ITEMS_REJECTED = Counter(
	"ding_items_rejected_total",
	"Content writes rejected",
	["reason"],
)

REACTION_TOGGLES = Counter(
	"ding_reaction_toggles_total",
	"Reactions withdrawn by re-submitting the same character",
)

THUMBNAIL_OUTCOMES = Counter(
	"ding_thumbnail_outcomes_total",
	"Thumbnail resolutions by outcome",
	["outcome"],
)

IDENTITY_EVENTS = Counter(
	"ding_identity_events_total",
	"Identity flow events",
	["event"],
)

IDENTITY_REJECTS = Counter(
	"ding_identity_rejects_total",
	"Identity flow rejections",
	["reason"],
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def inc_item_created(kind: str) -> None:
	ITEMS_CREATED.labels(kind=kind).inc()


def inc_item_rejected(reason: str) -> None:
	ITEMS_REJECTED.labels(reason=reason).inc()


def inc_reaction_toggle() -> None:
	REACTION_TOGGLES.inc()


def inc_thumbnail(outcome: str) -> None:
	THUMBNAIL_OUTCOMES.labels(outcome=outcome).inc()


def inc_identity_event(event: str) -> None:
	IDENTITY_EVENTS.labels(event=event).inc()


def inc_identity_reject(reason: str) -> None:
	IDENTITY_REJECTS.labels(reason=reason).inc()


def render_latest() -> tuple[bytes, str]:
	return generate_latest(), CONTENT_TYPE_LATEST
