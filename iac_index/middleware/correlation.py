"""Correlation IDs that tie API calls to the index builds they trigger."""

import logging
import re
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from iac_index.logging_config import correlation_id

logger = logging.getLogger(__name__)

CORRELATION_ID_HEADER = "X-Correlation-ID"
GENERATED_ID_LENGTH = 16

# Caller IDs are copied into every log record, so keep them short and printable
VALID_CORRELATION_ID = re.compile(r"^[A-Za-z0-9._:/-]{1,64}$")


def new_correlation_id() -> str:
    return uuid.uuid4().hex[:GENERATED_ID_LENGTH]


def resolve_correlation_id(header_value: str | None) -> str:
    """Use the caller's ID when it is well formed, otherwise mint one."""
    if header_value is not None:
        candidate = header_value.strip()
        if VALID_CORRELATION_ID.match(candidate):
            return candidate
        logger.debug("Ignoring malformed correlation ID", extra={"length": len(header_value)})
    return new_correlation_id()


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with a correlation ID.

    A /policies/search or /templates/search call on a cold cache (or the
    first one after /sources/refresh) fetches and parses a whole repository.
    The per-file "Failed to process policy ..." warnings and the closing
    "Indexed N policies from ..." line are emitted inside that request, so
    they carry its ID and can be traced back to the call that paid for the
    build.

    The ID is echoed in the response header. Callers may supply their own
    through X-Correlation-ID; blank or malformed values are replaced.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        req_id = resolve_correlation_id(request.headers.get(CORRELATION_ID_HEADER))
        token = correlation_id.set(req_id)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = req_id
            return response
        finally:
            correlation_id.reset(token)
