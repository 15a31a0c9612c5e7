"""Correlation ID middleware for request tracing"""
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

CORRELATION_HEADER = "X-Correlation-ID"

# Read by core.logging.CorrelationIdFilter for every log record
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Tag each request with a correlation id.

    A client-supplied X-Correlation-ID is reused, otherwise one is generated.
    The id is echoed on the response and stamped on every log line written
    while the request is handled, so an authorization denial can be traced
    back to the request that caused it.
    """

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())

        token = correlation_id_var.set(correlation_id)
        try:
            response = await call_next(request)
        finally:
            correlation_id_var.reset(token)

        response.headers[CORRELATION_HEADER] = correlation_id
        return response


def get_correlation_id() -> str:
    """Get the correlation ID for the current request"""
    return correlation_id_var.get()
