"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram


REQUEST_COUNTER = Counter(
	"marketplace_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"marketplace_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

SOCKET_CLIENTS = Gauge(
	"marketplace_socketio_clients",
	"Active Socket.IO clients per namespace",
	["namespace"],
)

SOCKET_EVENTS = Counter(
	"marketplace_socketio_events_total",
	"Socket.IO events handled per namespace",
	["namespace", "event"],
)

PRESENCE_ANNOUNCES = Counter(
	"marketplace_presence_announce_total",
	"Identity announcements written to the presence store",
)

PRESENCE_RELEASES = Counter(
	"marketplace_presence_release_total",
	"Presence releases segmented by whether the binding was removed",
	["result"],
)

PRESENCE_STORE_ERRORS = Counter(
	"marketplace_presence_store_errors_total",
	"Presence store failures absorbed by the store layer",
	["op"],
)

RELAY_MESSAGES = Counter(
	"marketplace_relay_messages_total",
	"Relay messages by outcome",
	["outcome"],
)

BOOTSTRAP_TRANSITIONS = Counter(
	"marketplace_redis_bootstrap_transitions_total",
	"Connection bootstrap state transitions",
	["state"],
)

REDIS_UP = Gauge(
	"marketplace_redis_up",
	"Redis availability as seen by readiness checks",
)

REDIS_LATENCY = Histogram(
	"marketplace_redis_latency_seconds",
	"Latency of readiness round-trips against Redis",
	buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25),
)

LEDGER_CALLS = Counter(
	"marketplace_rating_ledger_calls_total",
	"Rating ledger calls by function and result",
	["function", "result"],
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def socket_connected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).inc()


def socket_disconnected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).dec()


def socket_event(namespace: str, event: str) -> None:
	SOCKET_EVENTS.labels(namespace=namespace, event=event).inc()


def inc_presence_announce() -> None:
	PRESENCE_ANNOUNCES.inc()


def inc_presence_release(removed: bool) -> None:
	PRESENCE_RELEASES.labels(result="removed" if removed else "kept").inc()


def inc_presence_store_error(op: str) -> None:
	PRESENCE_STORE_ERRORS.labels(op=op).inc()


def inc_relay_message(outcome: str) -> None:
	RELAY_MESSAGES.labels(outcome=outcome).inc()


def inc_bootstrap_transition(state: str) -> None:
	BOOTSTRAP_TRANSITIONS.labels(state=state).inc()


def mark_redis(ok: bool, *, latency_seconds: float | None = None) -> None:
	REDIS_UP.set(1 if ok else 0)
	if latency_seconds is not None:
		REDIS_LATENCY.observe(latency_seconds)


def inc_ledger_call(function: str, result: str) -> None:
	LEDGER_CALLS.labels(function=function, result=result).inc()
