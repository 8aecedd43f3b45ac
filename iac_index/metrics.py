"""Prometheus metrics for the indexing service."""

from prometheus_client import Counter, Histogram, Gauge

# HTTP-level metrics (tracked via middleware)
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 30.0],
)

HTTP_REQUESTS_IN_PROGRESS = Gauge(
    "http_requests_in_progress",
    "HTTP requests currently being processed",
    ["method", "endpoint"],
)

# Domain metrics
POLICY_PARSE_TOTAL = Counter(
    "policy_parse_total",
    "Policy definitions parsed",
    ["outcome"],
)

TEMPLATE_EXTRACT_FAILURES_TOTAL = Counter(
    "template_extract_failures_total",
    "Per-file template extractions that degraded to an empty result",
    ["kind"],
)

CACHE_REQUESTS_TOTAL = Counter(
    "cache_requests_total",
    "Cache lookups by result",
    ["result"],
)

INDEX_BUILD_DURATION_SECONDS = Histogram(
    "index_build_duration_seconds",
    "Time to build a policy or template index",
    ["kind"],
    buckets=[0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 300.0, 900.0],
)


def normalize_endpoint(path: str) -> str:
    """Normalize endpoint paths to avoid high cardinality from path parameters.

    Only the fixed route set is exposed, so unknown paths collapse to a
    single label instead of growing the series count.
    """
    parts = path.strip("/").split("/")
    if not parts[0]:
        return "/"
    if parts[0] not in {"policies", "templates", "sources", "health", "ready", "metrics", "docs", "openapi.json"}:
        return "/{unknown}"
    return "/" + "/".join(parts[:2])


def record_cache_lookup(hit: bool) -> None:
    """Record one cache lookup outcome."""
    CACHE_REQUESTS_TOTAL.labels(result="hit" if hit else "miss").inc()
