"""Security middleware for HTTP security headers and request validation"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

SECURITY_HEADERS = {
    # Prevent clickjacking
    "X-Frame-Options": "DENY",
    # Prevent MIME type sniffing
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    # JSON API: nothing should ever be loaded from a response
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
    # Tokens and permission lists must not land in shared caches
    "Cache-Control": "no-store",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all HTTP responses"""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """
    Reject oversized bodies before they reach a route.

    Only the Content-Length header is inspected.
    """

    def __init__(self, app, max_request_size: int = 1024 * 1024):
        super().__init__(app)
        self.max_request_size = max_request_size

    async def dispatch(self, request: Request, call_next):
        content_length = request.headers.get("content-length")

        if content_length:
            try:
                size = int(content_length)
            except ValueError:
                return JSONResponse(
                    status_code=400, content={"error": "Invalid Content-Length header"}
                )
            if size > self.max_request_size:
                return JSONResponse(
                    status_code=413,
                    content={
                        "error": f"Request body too large. Maximum size: {self.max_request_size} bytes"
                    },
                )

        return await call_next(request)
