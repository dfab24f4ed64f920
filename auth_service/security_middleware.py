"""
Security middleware for the auth API:
- Security headers on every response
- Request logging for /auth endpoints (client IP, user agent, status, latency)
"""

import time

from fastapi import Request
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers to all responses.

    Token responses must never be cached by intermediaries.
    """

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "no-referrer"
        if request.url.path.startswith("/auth"):
            response.headers["Cache-Control"] = "no-store"
            response.headers["Pragma"] = "no-cache"

        return response


class SecurityLoggingMiddleware(BaseHTTPMiddleware):
    """Log auth requests. Bodies and tokens are never logged."""

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith("/auth"):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        user_agent = request.headers.get("user-agent", "unknown")
        started = time.perf_counter()

        response = await call_next(request)

        elapsed_ms = (time.perf_counter() - started) * 1000
        message = (
            f"[AUTH] {request.method} {request.url.path} -> {response.status_code} "
            f"from {client_ip} - {user_agent} ({elapsed_ms:.1f}ms)"
        )
        if response.status_code >= 400:
            logger.warning(message)
        else:
            logger.info(message)
        return response
