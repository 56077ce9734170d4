"""HTTP middleware for request correlation and rate limiting.

``request_id_middleware``:
- Accepts incoming X-Request-ID header or generates a UUID
- Stores request_id in contextvars for access throughout the request lifecycle
- Injects request_id and the request duration into response headers

``rate_limit_middleware``:
- Classifies the request into a tier and counts it against the caller's budget
- Rejects over-budget requests with 429 and a Retry-After hint
- Adds RateLimit-* headers to every limited response

Usage:
    app.middleware("http")(rate_limit_middleware)
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from six_cities.adapters.rate_limit.base import RateLimitResult
from six_cities.core.auth import resolve_principal_id
from six_cities.core.config import settings
from six_cities.core.logging import clear_request_id, get_request_id, set_request_id
from six_cities.core.rate_limit import TieredRateLimiter

logger = logging.getLogger(__name__)

# Probes must keep working while a client is throttled
EXEMPT_PATHS = frozenset({"/health"})
EXEMPT_PATH_PREFIXES = ("/health/",)


def is_exempt(path: str) -> bool:
    return path in EXEMPT_PATHS or path.startswith(EXEMPT_PATH_PREFIXES)


async def request_id_middleware(request: Request, call_next) -> Response:
    """HTTP middleware for request ID generation and propagation.

    If the client provides an X-Request-ID header (configurable via
    LOG_REQUEST_ID_HEADER), that value is used. Otherwise, a new UUID is
    generated. The ID is propagated back in the response headers and stored
    in contextvars for log correlation.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The response from the next handler with request_id and
            duration headers added.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response


def _rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    headers = {
        "RateLimit-Limit": str(result.limit),
        "RateLimit-Remaining": str(result.remaining),
        "RateLimit-Reset": str(result.reset_at),
    }
    if result.retry_after_seconds is not None:
        headers["Retry-After"] = str(result.retry_after_seconds)
    return headers


async def rate_limit_middleware(request: Request, call_next) -> Response:
    """HTTP middleware enforcing tiered rate limits.

    The limiter is read from ``app.state.rate_limiter``; the middleware is a
    pass-through when rate limiting is disabled or no limiter is installed.

    Returns:
        Response: 429 JSON error when over budget, otherwise the downstream
            response with RateLimit-* headers.
    """

    cfg = settings.rate_limit
    limiter: TieredRateLimiter | None = getattr(request.app.state, "rate_limiter", None)
    if not cfg.enabled or limiter is None or is_exempt(request.url.path):
        return await call_next(request)

    decision = await limiter.admit(
        path=request.url.path,
        method=request.method,
        client_address=request.client.host if request.client else None,
        principal_id=resolve_principal_id(request),
    )
    result = decision.result
    headers = _rate_limit_headers(result) if cfg.include_headers else {}

    if not decision.allowed:
        retry_after = decision.retry_after_seconds or 0
        logger.warning(
            "rate_limit.exceeded",
            extra={
                "tier": decision.tier.value,
                "key_type": decision.identity.kind,
                "key_hash": decision.identity.key_hash,
                "limit": result.limit,
                "retry_after_s": retry_after,
                "shared_counter": decision.shared,
            },
        )
        # Retry-After is part of the 429 contract even when informational
        # headers are turned off
        headers.setdefault("Retry-After", str(retry_after))
        return JSONResponse(
            status_code=429,
            content={
                "error": {
                    "code": "rate_limit_exceeded",
                    "message": decision.message,
                    "request_id": get_request_id(),
                    "details": {"retry_after": retry_after, "tier": decision.tier.value},
                }
            },
            headers=headers,
        )

    logger.debug(
        "rate_limit.allowed",
        extra={
            "tier": decision.tier.value,
            "key_type": decision.identity.kind,
            "key_hash": decision.identity.key_hash,
            "remaining": result.remaining,
            "shared_counter": decision.shared,
        },
    )
    response = await call_next(request)
    for name, value in headers.items():
        response.headers[name] = value
    return response
