"""Request context middleware: request id, timing, access log and rate limiting.

One middleware does all four so every request is touched exactly once.
``check_rate_limit`` is a pure function over a caller-owned bucket dict and
is tested without spinning up the app.
"""

import logging
import threading
import time
import uuid
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from ..core.config import settings
from ..core.logging_config import request_id_var

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Token bucket
# ---------------------------------------------------------------------------

# {client_ip: (available_tokens, last_refill_timestamp)}
_rate_buckets: dict[str, tuple[float, float]] = {}
_rate_lock = threading.Lock()

_rate_call_count = 0
_EVICT_EVERY = 100
_EVICT_AGE = 120.0


def check_rate_limit(
    bucket: dict[str, tuple[float, float]],
    key: str,
    max_per_minute: int,
    now: Optional[float] = None,
) -> tuple[bool, float]:
    """Take one token for *key* from *bucket*.

    Args:
        bucket: Per-key state, modified in place.
        key: Client identifier.
        max_per_minute: Sustained rate; also the burst size.
        now: Monotonic timestamp, injectable for tests.

    Returns:
        ``(allowed, retry_after)`` where *retry_after* is the number of
        seconds until a token is available (0.0 when allowed).
    """
    global _rate_call_count

    if max_per_minute <= 0:
        return True, 0.0

    if now is None:
        now = time.monotonic()

    _rate_call_count += 1
    if _rate_call_count % _EVICT_EVERY == 0:
        cutoff = now - _EVICT_AGE
        for stale_key in [k for k, (_, ts) in bucket.items() if ts < cutoff]:
            del bucket[stale_key]

    per_second = max_per_minute / 60.0

    tokens, last = bucket.get(key, (float(max_per_minute), now))
    tokens = min(float(max_per_minute), tokens + (now - last) * per_second)

    if tokens >= 1.0:
        bucket[key] = (tokens - 1.0, now)
        return True, 0.0

    bucket[key] = (tokens, now)
    return False, (1.0 - tokens) / per_second


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

_EXEMPT_PATHS = frozenset({"/", "/health", "/docs", "/redoc", "/openapi.json"})


def client_ip(request: Request) -> str:
    """First ``X-Forwarded-For`` hop when proxied, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Attach a request id, enforce the rate limit, time and log the request."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        rid = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
        request_id_var.set(rid)

        path = request.url.path
        if path not in _EXEMPT_PATHS and request.method != "OPTIONS":
            key = client_ip(request)
            with _rate_lock:
                allowed, retry_after = check_rate_limit(
                    _rate_buckets, key, settings.rate_limit_per_minute
                )
            if not allowed:
                logger.warning(
                    "Rate limit exceeded",
                    extra={"client": key, "path": path, "retry_after": round(retry_after, 1)},
                )
                return JSONResponse(
                    status_code=429,
                    content={
                        "error": "RATE_LIMITED",
                        "message": "Too many requests, please try again later",
                        "details": {"retry_after": round(retry_after, 1)},
                    },
                    headers={
                        "Retry-After": str(int(retry_after) + 1),
                        "X-Request-ID": rid,
                    },
                )

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        response.headers["X-Request-ID"] = rid
        response.headers["X-Response-Time"] = f"{duration_ms}ms"

        logger.info(
            f"{request.method} {path} {response.status_code}",
            extra={
                "method": request.method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        return response
