"""
Security hardening for the portal API.

- Rate limiting (IP-based using slowapi), stricter on sign-in endpoints
- Security headers and a per-request X-Request-ID
- Request size validation
- Sanitised error responses in the ``{"success": false, "error": ...}`` shape

Configuration via environment variables:
- RATE_LIMIT_ENABLED: set to 'false' to disable rate limiting (default: true)
- RATE_LIMIT_PER_MINUTE: requests per minute per IP (default: 100)
- AUTH_RATE_LIMIT: limit for login/register/OAuth callback (default: 5/minute)
- MAX_REQUEST_SIZE_MB: maximum request body size in MB (default: 2)
- ENVIRONMENT: 'production' or 'development' (affects error detail exposure)
- TRUSTED_PROXY_COUNT: proxies in front of the app (default: 1)
"""

import ipaddress
import logging
import os
import time
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

load_dotenv()

logger = logging.getLogger(__name__)

# =============================================================================
# Configuration
# =============================================================================

RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() != "false"
RATE_LIMIT_PER_MINUTE = int(os.getenv("RATE_LIMIT_PER_MINUTE", "100"))
DEFAULT_RATE_LIMIT = f"{RATE_LIMIT_PER_MINUTE}/minute"
AUTH_RATE_LIMIT = os.getenv("AUTH_RATE_LIMIT", "5/minute")

MAX_REQUEST_SIZE_MB = int(os.getenv("MAX_REQUEST_SIZE_MB", "2"))
MAX_REQUEST_SIZE_BYTES = MAX_REQUEST_SIZE_MB * 1024 * 1024

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
IS_PRODUCTION = ENVIRONMENT.lower() == "production"

TRUSTED_PROXY_COUNT = int(os.getenv("TRUSTED_PROXY_COUNT", "1"))


# =============================================================================
# Rate Limiter Setup
# =============================================================================

def _is_valid_ip(ip_str: str) -> bool:
    if not ip_str or len(ip_str) > 45:
        return False
    try:
        ipaddress.ip_address(ip_str)
        return True
    except ValueError:
        return False


def get_client_ip(request: Request) -> str:
    """
    Client IP with anti-spoofing for X-Forwarded-For.

    Proxies append the connecting address, so the entry just left of our
    TRUSTED_PROXY_COUNT proxies is the real client; anything further left
    may be forged.
    """
    direct_ip = request.client.host if request.client else None

    if forwarded_for := request.headers.get("X-Forwarded-For"):
        if ips := [ip.strip() for ip in forwarded_for.split(",") if ip.strip()]:
            if len(ips) > TRUSTED_PROXY_COUNT:
                client_ip = ips[-(TRUSTED_PROXY_COUNT + 1)]
            else:
                client_ip = ips[0]

            if _is_valid_ip(client_ip):
                return client_ip
            logger.warning("Invalid IP in X-Forwarded-For header: %r", client_ip[:50])

    if real_ip := request.headers.get("X-Real-IP"):
        real_ip = real_ip.strip()
        if _is_valid_ip(real_ip):
            return real_ip
        logger.warning("Invalid X-Real-IP header: %r", real_ip[:50])

    return direct_ip if direct_ip and _is_valid_ip(direct_ip) else "unknown"


limiter = Limiter(
    key_func=get_client_ip,
    default_limits=[DEFAULT_RATE_LIMIT],
    storage_uri="memory://",
    strategy="fixed-window",
    enabled=RATE_LIMIT_ENABLED,
)


def rate_limit_auth():
    """Decorator for sign-in endpoints with strict rate limiting."""
    return limiter.limit(AUTH_RATE_LIMIT)


# =============================================================================
# Middleware
# =============================================================================

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds security headers, X-Request-ID and a completion log line."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        start = time.time()

        response = await call_next(request)

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = (
            "accelerometer=(), camera=(), geolocation=(), gyroscope=(), "
            "magnetometer=(), microphone=(), payment=(), usb=()"
        )
        if IS_PRODUCTION:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains; preload"
        response.headers["X-Request-ID"] = request_id
        if not response.headers.get("Cache-Control"):
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, private"

        logger.info(
            "Request completed: %s %s status=%d duration=%.3fs request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            time.time() - start,
            request_id,
        )
        return response


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Rejects bodies larger than MAX_REQUEST_SIZE_MB."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if content_length := request.headers.get("content-length"):
            try:
                size = int(content_length)
            except ValueError:
                return JSONResponse(
                    status_code=400,
                    content={"success": False, "error": "Invalid Content-Length header"},
                )
            if size > MAX_REQUEST_SIZE_BYTES:
                return JSONResponse(
                    status_code=413,
                    content={
                        "success": False,
                        "error": f"Request body too large. Maximum size is {MAX_REQUEST_SIZE_MB}MB.",
                    },
                )
        return await call_next(request)


# =============================================================================
# Exception Handlers
# =============================================================================

def _cors_headers(request: Request, allowed_origins: list[str]) -> dict[str, str]:
    headers = {"X-Request-ID": getattr(request.state, "request_id", str(uuid.uuid4()))}
    origin = request.headers.get("origin", "")
    if origin in allowed_origins:
        headers["Access-Control-Allow-Origin"] = origin
        headers["Access-Control-Allow-Credentials"] = "true"
    return headers


def create_secure_exception_handler(allowed_origins: list[str]) -> Callable:
    """Unhandled errors: logged in full, returned without internals in production."""

    async def secure_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        headers = _cors_headers(request, allowed_origins)
        logger.error(
            "Unhandled exception: %s: %s request_id=%s path=%s method=%s",
            type(exc).__name__,
            exc,
            headers["X-Request-ID"],
            request.url.path,
            request.method,
            exc_info=exc,
        )
        message = "An internal server error occurred. Please try again later." if IS_PRODUCTION else str(exc)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": message, "request_id": headers["X-Request-ID"]},
            headers=headers,
        )

    return secure_exception_handler


def create_rate_limit_exceeded_handler(allowed_origins: list[str]) -> Callable:
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        headers = _cors_headers(request, allowed_origins)
        headers["Retry-After"] = "60"
        log_security_event("rate_limit", request)
        return JSONResponse(
            status_code=429,
            content={"success": False, "error": "Rate limit exceeded. Please slow down your requests."},
            headers=headers,
        )

    return rate_limit_handler


def create_http_exception_handler(allowed_origins: list[str]) -> Callable:
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        headers = _cors_headers(request, allowed_origins)
        if exc.headers:
            headers.update(exc.headers)
        if exc.status_code in (401, 403):
            log_security_event("auth_failure" if exc.status_code == 401 else "access_denied", request)
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.detail},
            headers=headers,
        )

    return http_exception_handler


# =============================================================================
# Setup
# =============================================================================

def setup_security(app: FastAPI, allowed_origins: list[str]) -> None:
    """Register rate limiting, security middleware and sanitised handlers."""
    app.state.limiter = limiter

    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestSizeLimitMiddleware)

    app.add_exception_handler(RateLimitExceeded, create_rate_limit_exceeded_handler(allowed_origins))
    app.add_exception_handler(Exception, create_secure_exception_handler(allowed_origins))
    app.add_exception_handler(HTTPException, create_http_exception_handler(allowed_origins))

    logger.info(
        "Security middleware configured: rate_limit=%s (%s), max_request_size=%dMB, environment=%s",
        DEFAULT_RATE_LIMIT,
        "on" if RATE_LIMIT_ENABLED else "off",
        MAX_REQUEST_SIZE_MB,
        ENVIRONMENT,
    )


# =============================================================================
# Audit Logging
# =============================================================================

def log_security_event(event_type: str, request: Request, details: Optional[dict] = None) -> None:
    """Log a security-relevant event for audit purposes."""
    log_data = {
        "event_type": event_type,
        "request_id": getattr(request.state, "request_id", "unknown"),
        "client_ip": get_client_ip(request),
        "path": request.url.path,
        "method": request.method,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if details:
        log_data |= details
    logger.warning("SECURITY_EVENT: %s", log_data)
