"""Response headers for the record pages, the JSON API and report downloads."""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

# Record pages link to each other by uid; nothing is meant to be embedded elsewhere.
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=(), payment=()",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Stamps ``SECURITY_HEADERS`` onto every response, overriding route values."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers.update(SECURITY_HEADERS)
        return response
