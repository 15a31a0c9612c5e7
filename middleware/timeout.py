"""Request timeout middleware."""

import asyncio
import logging
import time
from collections.abc import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class TimeoutMiddleware(BaseHTTPMiddleware):
    """
    Abort requests that run longer than the configured timeout with 504.

    The authorization chain never retries, so a stalled store shows up here.
    """

    def __init__(self, app, timeout: float = 30.0):
        super().__init__(app)
        self.timeout = timeout

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()

        try:
            response = await asyncio.wait_for(call_next(request), timeout=self.timeout)
        except asyncio.TimeoutError:
            elapsed = time.perf_counter() - start_time
            logger.error(
                f"Request timeout on {request.method} {request.url.path} after {elapsed:.2f}s"
            )
            return JSONResponse(
                status_code=504,
                content={"error": f"Request timeout after {elapsed:.2f} seconds"},
            )

        response.headers["X-Process-Time"] = f"{time.perf_counter() - start_time:.4f}"
        return response
