"""
Security Headers Middleware

Adds the standard browser hardening headers to every response:
- X-Content-Type-Options, X-Frame-Options, Referrer-Policy, Permissions-Policy
- Strict-Transport-Security and Content-Security-Policy outside DEBUG
- Cache-Control: no-store on auth endpoints (bearer tokens, gym profile)

Uploaded media is served from /uploads and embedded by the front end, so the
CSP allows https: images and media but no third-party scripts.
"""
from typing import Dict

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from core.config import settings

NO_STORE_PREFIXES = ("/v1/auth",)

CONTENT_SECURITY_POLICY = "; ".join([
    "default-src 'self'",
    "script-src 'self'",
    "style-src 'self' 'unsafe-inline'",
    "img-src 'self' data: https:",
    "media-src 'self' https:",
    "font-src 'self' data:",
    "connect-src 'self'",
    "frame-ancestors 'none'",
]) + ";"

PERMISSIONS_POLICY = ", ".join(
    f"{feature}=()"
    for feature in ("accelerometer", "geolocation", "gyroscope", "magnetometer", "microphone", "payment", "usb")
)


def build_security_headers(debug: bool) -> Dict[str, str]:
    headers = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "Permissions-Policy": PERMISSIONS_POLICY,
    }
    if not debug:
        headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        headers["Content-Security-Policy"] = CONTENT_SECURITY_POLICY
    return headers


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds security headers to all responses."""

    def __init__(self, app, debug: bool = None):
        super().__init__(app)
        self.headers = build_security_headers(settings.DEBUG if debug is None else debug)

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        for name, value in self.headers.items():
            response.headers[name] = value
        if request.url.path.startswith(NO_STORE_PREFIXES):
            response.headers["Cache-Control"] = "no-store"
        return response
