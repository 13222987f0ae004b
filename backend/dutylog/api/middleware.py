"""Middleware for rate limiting, security headers and request logging."""

import logging
import time
from collections import defaultdict
from datetime import UTC, datetime, timedelta

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from dutylog.core.config import get_settings
from dutylog.core.metrics import observe_http_request
from dutylog.core.request_context import new_request_id, request_id_context
from dutylog.core.security import decode_token
from dutylog.core.structured_logging import log_json

logger = logging.getLogger(__name__)
settings = get_settings()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add basic security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        response.headers.setdefault(
            "Permissions-Policy",
            "camera=(), microphone=(), geolocation=()",
        )

        if settings.environment == "production":
            forwarded_proto = request.headers.get("x-forwarded-proto")
            scheme = forwarded_proto or request.url.scheme
            if scheme == "https":
                response.headers.setdefault(
                    "Strict-Transport-Security",
                    "max-age=63072000; includeSubDomains",
                )

        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding-window rate limiting for credential and invitation endpoints.

    Production only. Limits come from settings:
    - Login: per minute per IP
    - Signup: per hour per IP
    - Invitation send/resend: per hour per principal (IP fallback)
    """

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        # Storage: {(endpoint, identifier): [timestamp, ...]}
        self._requests: dict[tuple[str, str], list[datetime]] = defaultdict(list)

    def _hits(self, endpoint: str, identifier: str, window: timedelta) -> int:
        """Drop hits outside the window and count the rest."""
        cutoff = datetime.now(UTC) - window
        key = (endpoint, identifier)
        self._requests[key] = [ts for ts in self._requests[key] if ts > cutoff]
        return len(self._requests[key])

    def _add_hit(self, endpoint: str, identifier: str) -> None:
        self._requests[(endpoint, identifier)].append(datetime.now(UTC))

    @staticmethod
    def _principal_or_ip_identifier(request: Request) -> str:
        """Prefer the JWT subject for identification, fallback to client IP."""
        client_ip = request.client.host if request.client else "unknown"
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            payload = decode_token(auth_header.removeprefix("Bearer ").strip())
            if payload and payload.get("sub"):
                return str(payload["sub"])
        return client_ip

    def _limit_for(self, request: Request) -> tuple[str, str, int, timedelta] | None:
        path = request.url.path
        client_ip = request.client.host if request.client else "unknown"

        if path == "/api/auth/login":
            return "login", client_ip, settings.rate_limit_login_per_minute, timedelta(minutes=1)
        if path == "/api/auth/signup":
            return "signup", client_ip, settings.rate_limit_signup_per_hour, timedelta(hours=1)
        if path == "/api/invitations/send" or path.startswith("/api/invitations/resend/"):
            return (
                "invite",
                self._principal_or_ip_identifier(request),
                settings.rate_limit_invite_per_hour,
                timedelta(hours=1),
            )
        return None

    async def dispatch(self, request: Request, call_next):
        """Apply rate limiting based on endpoint."""
        if settings.environment != "production" or request.method != "POST":
            return await call_next(request)

        limit = self._limit_for(request)
        if limit is not None:
            endpoint, identifier, max_hits, window = limit
            if self._hits(endpoint, identifier, window) >= max_hits:
                log_json(
                    logger,
                    logging.WARNING,
                    "rate_limited",
                    endpoint=endpoint,
                    path=request.url.path,
                )
                return JSONResponse(
                    status_code=429,
                    content={"error": "Too many requests. Please try again later."},
                )
            self._add_hit(endpoint, identifier)

        return await call_next(request)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Request logging middleware with structured logging.

    Logs:
    - Method, path, status code, duration
    - IP address for security
    - Structured JSON format
    """

    async def dispatch(self, request: Request, call_next):
        """Log request details."""
        incoming_request_id = (
            request.headers.get("X-Request-ID")
            or request.headers.get("X-Correlation-ID")
        )
        request_id = None
        if incoming_request_id:
            candidate = incoming_request_id.strip()
            if candidate and len(candidate) <= 128 and "\n" not in candidate and "\r" not in candidate:
                request_id = candidate

        if not request_id:
            request_id = new_request_id()

        request.state.request_id = request_id

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"
        method = request.method
        path = request.url.path

        with request_id_context(request_id):
            try:
                response = await call_next(request)
            except Exception as exc:
                duration_ms = (time.perf_counter() - start_time) * 1000
                log_json(
                    logger,
                    logging.ERROR,
                    "request_error",
                    method=method,
                    path=path,
                    status_code=500,
                    duration_ms=round(duration_ms, 2),
                    client_ip=client_ip,
                    error=str(exc),
                    exception=exc.__class__.__name__,
                )
                raise

            response.headers.setdefault("X-Request-ID", request_id)

            duration_ms = (time.perf_counter() - start_time) * 1000

            route_obj = request.scope.get("route")
            route_template = getattr(route_obj, "path", None) if route_obj else None
            if not route_template:
                route_template = "unmatched"

            observe_http_request(
                method=method,
                route=route_template,
                status_code=response.status_code,
                duration_ms=duration_ms,
            )

            if response.status_code >= 500:
                level = logging.ERROR
            elif response.status_code >= 400:
                level = logging.WARNING
            else:
                level = logging.INFO

            log_json(
                logger,
                level,
                "request",
                method=method,
                path=path,
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
                client_ip=client_ip,
            )

            return response
