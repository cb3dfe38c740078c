"""Monitoring utilities leveraging Prometheus client."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

http_requests_total = Counter(
    "fieldrag_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_latency_seconds = Histogram(
    "fieldrag_http_request_latency_seconds",
    "HTTP request latency",
    ["method", "path"],
)

searches_total = Counter(
    "fieldrag_searches_total",
    "Hybrid searches executed",
    ["mode", "outcome"],
)

search_latency_seconds = Histogram(
    "fieldrag_search_latency_seconds",
    "End-to-end hybrid search latency",
    ["mode"],
)

group_failures_total = Counter(
    "fieldrag_group_failures_total",
    "Namespace group searches that failed or timed out",
    ["group"],
)

documents_added_total = Counter(
    "fieldrag_documents_added_total",
    "Documents appended to the store",
    ["namespace"],
)

embedding_failures_total = Counter(
    "fieldrag_embedding_failures_total",
    "Embedding provider failures",
    ["provider"],
)


def observe_request(method: str, path: str, status: int, duration_seconds: float) -> None:
    http_requests_total.labels(method=method, path=path, status=str(status)).inc()
    http_request_latency_seconds.labels(method=method, path=path).observe(duration_seconds)


def observe_search(mode: str, duration_seconds: float, *, failed: bool = False) -> None:
    searches_total.labels(mode=mode, outcome="error" if failed else "ok").inc()
    search_latency_seconds.labels(mode=mode).observe(duration_seconds)


def record_group_failure(group: str) -> None:
    group_failures_total.labels(group=group).inc()


def record_document_added(namespace: str) -> None:
    documents_added_total.labels(namespace=namespace).inc()


def record_embedding_failure(provider: str) -> None:
    embedding_failures_total.labels(provider=provider).inc()
