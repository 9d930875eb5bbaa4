"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram


REQUEST_COUNTER = Counter(
	"inkwell_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"inkwell_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

SOCKET_CLIENTS = Gauge(
	"inkwell_socketio_clients",
	"Active Socket.IO clients per namespace",
	["namespace"],
)

SOCKET_EVENTS = Counter(
	"inkwell_socketio_events_total",
	"Socket.IO events received per namespace",
	["namespace", "event"],
)

PRESENCE_ONLINE = Gauge(
	"inkwell_presence_online_users",
	"Users with a registered real-time connection",
)

CHAT_SEND = Counter(
	"inkwell_chat_send_total",
	"Direct messages persisted",
	["transport"],
)

CHAT_SEND_REJECTS = Counter(
	"inkwell_chat_send_rejects_total",
	"Rejected direct message sends",
	["reason"],
)

CHAT_NOTIFICATIONS = Counter(
	"inkwell_chat_notifications_total",
	"message_notification events emitted",
)

CHAT_READ_UPDATES = Counter(
	"inkwell_chat_read_updates_total",
	"Messages flipped to read",
)

FEED_PAGES = Counter(
	"inkwell_feed_pages_total",
	"Feed pages assembled",
	["kind"],
)

FEED_SOURCE_ERRORS = Counter(
	"inkwell_feed_source_errors_total",
	"Feed source fetches that failed",
	["source"],
)

FEED_FALLBACKS = Counter(
	"inkwell_feed_fallbacks_total",
	"First feed pages served from the plain global fallback",
)

SEARCH_QUERIES = Counter(
	"inkwell_search_queries_total",
	"Post listing queries by search intent",
	["intent"],
)

REDIS_UP = Gauge("inkwell_redis_up", "Redis availability (1=up,0=down)")
POSTGRES_UP = Gauge("inkwell_postgres_up", "Postgres availability (1=up,0=down)")


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def socket_connected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).inc()


def socket_disconnected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).dec()


def socket_event(namespace: str, event: str) -> None:
	SOCKET_EVENTS.labels(namespace=namespace, event=event).inc()


def set_presence_online(count: int) -> None:
	PRESENCE_ONLINE.set(count)


def inc_chat_send(transport: str) -> None:
	CHAT_SEND.labels(transport=transport).inc()


def inc_chat_send_reject(reason: str) -> None:
	CHAT_SEND_REJECTS.labels(reason=reason).inc()


def inc_chat_notification() -> None:
	CHAT_NOTIFICATIONS.inc()


def inc_chat_read(count: int) -> None:
	if count > 0:
		CHAT_READ_UPDATES.inc(count)


def inc_feed_page(kind: str) -> None:
	FEED_PAGES.labels(kind=kind).inc()


def inc_feed_source_error(source: str) -> None:
	FEED_SOURCE_ERRORS.labels(source=source).inc()


def inc_feed_fallback() -> None:
	FEED_FALLBACKS.inc()


def inc_search_query(intent: str) -> None:
	SEARCH_QUERIES.labels(intent=intent).inc()


def mark_redis(up: bool) -> None:
	REDIS_UP.set(1 if up else 0)


def mark_postgres(up: bool) -> None:
	POSTGRES_UP.set(1 if up else 0)
