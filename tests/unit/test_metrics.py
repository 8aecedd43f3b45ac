"""Unit tests for Prometheus metrics module."""

from prometheus_client import REGISTRY, Counter, Gauge, Histogram

from iac_index.cache import CacheStore
from iac_index.metrics import (
    CACHE_REQUESTS_TOTAL,
    HTTP_REQUESTS_IN_PROGRESS,
    HTTP_REQUESTS_TOTAL,
    HTTP_REQUEST_DURATION_SECONDS,
    INDEX_BUILD_DURATION_SECONDS,
    POLICY_PARSE_TOTAL,
    TEMPLATE_EXTRACT_FAILURES_TOTAL,
    normalize_endpoint,
    record_cache_lookup,
)


def cache_lookups(result: str) -> float:
    return REGISTRY.get_sample_value("cache_requests_total", {"result": result}) or 0.0


class TestMetricDefinitions:
    """Test that metric definitions are correct."""

    def test_types(self):
        assert isinstance(HTTP_REQUESTS_TOTAL, Counter)
        assert isinstance(HTTP_REQUEST_DURATION_SECONDS, Histogram)
        assert isinstance(HTTP_REQUESTS_IN_PROGRESS, Gauge)
        assert isinstance(POLICY_PARSE_TOTAL, Counter)
        assert isinstance(TEMPLATE_EXTRACT_FAILURES_TOTAL, Counter)
        assert isinstance(CACHE_REQUESTS_TOTAL, Counter)
        assert isinstance(INDEX_BUILD_DURATION_SECONDS, Histogram)

    def test_http_labels(self):
        assert HTTP_REQUESTS_TOTAL._labelnames == ("method", "endpoint", "status_code")
        assert HTTP_REQUEST_DURATION_SECONDS._labelnames == ("method", "endpoint")
        assert HTTP_REQUESTS_IN_PROGRESS._labelnames == ("method", "endpoint")

    def test_domain_labels(self):
        assert POLICY_PARSE_TOTAL._labelnames == ("outcome",)
        assert TEMPLATE_EXTRACT_FAILURES_TOTAL._labelnames == ("kind",)
        assert CACHE_REQUESTS_TOTAL._labelnames == ("result",)
        assert INDEX_BUILD_DURATION_SECONDS._labelnames == ("kind",)


class TestNormalizeEndpoint:
    """Test endpoint normalization for metrics labels."""

    def test_root(self):
        assert normalize_endpoint("/") == "/"

    def test_fixed_routes(self):
        assert normalize_endpoint("/health") == "/health"
        assert normalize_endpoint("/metrics") == "/metrics"
        assert normalize_endpoint("/policies/analyze") == "/policies/analyze"
        assert normalize_endpoint("/templates/search") == "/templates/search"
        assert normalize_endpoint("/sources/refresh") == "/sources/refresh"

    def test_deep_paths_are_truncated(self):
        assert normalize_endpoint("/policies/search/extra/segments") == "/policies/search"

    def test_unknown_paths_collapse(self):
        assert normalize_endpoint("/wp-admin/login.php") == "/{unknown}"
        assert normalize_endpoint("/random-scan-123") == "/{unknown}"


class TestCacheMetrics:
    """Test cache lookup accounting."""

    def test_record_cache_lookup(self):
        hits, misses = cache_lookups("hit"), cache_lookups("miss")
        record_cache_lookup(True)
        record_cache_lookup(False)
        record_cache_lookup(False)
        assert cache_lookups("hit") == hits + 1
        assert cache_lookups("miss") == misses + 2

    def test_cache_store_records_lookups(self):
        store = CacheStore()
        hits, misses = cache_lookups("hit"), cache_lookups("miss")
        store.set("k", "v")
        store.get("k")
        store.get("absent")
        assert cache_lookups("hit") == hits + 1
        assert cache_lookups("miss") == misses + 1
