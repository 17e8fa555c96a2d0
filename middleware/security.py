"""
Security middleware: per-IP rate limiting, response headers, CORS and trusted hosts.
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
import time
from collections import defaultdict
from typing import Dict, List, Tuple

from core.logger import logger
import config

# Not counted against the limit
RATE_LIMIT_EXEMPT: List[str] = ["/health", "/docs", "/openapi.json", "/redoc"]


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Sliding-window rate limiting per client IP.
    Over-limit requests get a 429 in the standard error envelope.
    """

    def __init__(self, app, requests_per_minute: int = 60, requests_per_hour: int = 1000):
        super().__init__(app)
        # (window seconds, max requests)
        self.windows: List[Tuple[int, int]] = [(60, requests_per_minute), (3600, requests_per_hour)]
        self.requests: Dict[str, list] = defaultdict(list)
        self.cleanup_interval = 300
        self.last_cleanup = time.time()

    async def dispatch(self, request: Request, call_next):
        if request.url.path in RATE_LIMIT_EXEMPT or request.method == "OPTIONS":
            return await call_next(request)

        client_ip = _client_ip(request)
        current_time = time.time()
        if current_time - self.last_cleanup > self.cleanup_interval:
            self._cleanup_old_entries(current_time)
            self.last_cleanup = current_time

        if not self._check_rate_limit(client_ip, current_time):
            logger.warning(f"Rate limit exceeded for IP: {client_ip} ({request.method} {request.url.path})")
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"success": False, "error": "Rate limit exceeded. Please try again later."},
                headers={"Retry-After": "60"}
            )

        return await call_next(request)

    def _check_rate_limit(self, client_ip: str, current_time: float) -> bool:
        longest = max(seconds for seconds, _ in self.windows)
        history = [t for t in self.requests[client_ip] if current_time - t < longest]
        self.requests[client_ip] = history

        for seconds, limit in self.windows:
            if sum(1 for t in history if current_time - t < seconds) >= limit:
                return False

        history.append(current_time)
        return True

    def _cleanup_old_entries(self, current_time: float):
        longest = max(seconds for seconds, _ in self.windows)
        for ip in list(self.requests.keys()):
            self.requests[ip] = [t for t in self.requests[ip] if current_time - t < longest]
            if not self.requests[ip]:
                del self.requests[ip]


def _client_ip(request: Request) -> str:
    """First X-Forwarded-For hop when behind a proxy, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        # CSP is left to the frontend; the API is called cross-origin
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store"
        if config.ENVIRONMENT == "production":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response


def setup_cors(app, allowed_origins: list[str], allowed_methods: list[str] = None):
    """
    Setup CORS middleware.

    Credentials are allowed so the browser sends the session cookie.
    """
    if allowed_methods is None:
        allowed_methods = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=config.CORS_ALLOW_CREDENTIALS,
        allow_methods=allowed_methods,
        allow_headers=["Authorization", "Content-Type"],
        expose_headers=["Content-Disposition"],
    )


def setup_trusted_hosts(app, allowed_hosts: list[str]):
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=allowed_hosts
    )
