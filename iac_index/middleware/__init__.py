"""HTTP middleware."""

from iac_index.middleware.correlation import CORRELATION_ID_HEADER, CorrelationIdMiddleware
from iac_index.middleware.metrics import MetricsMiddleware

__all__ = ["CORRELATION_ID_HEADER", "CorrelationIdMiddleware", "MetricsMiddleware"]
