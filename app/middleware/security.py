# app/middleware/security.py
from starlette.middleware.base import BaseHTTPMiddleware
from fastapi import Request
import logging
from app.config import settings

logger = logging.getLogger(__name__)

DOC_PATHS = {"/docs", "/redoc", "/openapi.json", "/docs/oauth2-redirect"}

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Security headers on every dashboard response, with relaxed CSP on docs."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        path = request.url.path

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # geolocation stays allowed for meter coordinates
        response.headers["Permissions-Policy"] = (
            "accelerometer=(), camera=(self), gyroscope=(), magnetometer=(), "
            "microphone=(), payment=(), usb=()"
        )
        # session scoped data must never be cached
        response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, private"
        response.headers["Pragma"] = "no-cache"

        if not settings.DEBUG:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        if path in DOC_PATHS:
            # Swagger/Redoc need jsdelivr and inline styles
            csp = (
                "default-src 'self'; "
                "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
                "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
                "img-src 'self' data: https:; "
                "object-src 'none'; "
                "frame-ancestors 'none'"
            )
        else:
            csp = (
                "default-src 'self'; "
                "img-src 'self' data: blob:; "
                "object-src 'none'; "
                "base-uri 'self'; "
                "frame-ancestors 'none'"
            )

        response.headers["Content-Security-Policy"] = csp

        return response
