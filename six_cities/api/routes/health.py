from __future__ import annotations

import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter(tags=["Health"])


def _store_status(request: Request) -> str:
    store = getattr(request.app.state, "kv_store", None)
    if store is None:
        return "not_configured"
    return "up" if store.is_available else "down"


@router.get("/health")
def health_check(request: Request) -> dict:
    """Health check endpoint.

    Reports uptime, the shared store status and the rate limiter state.
    A degraded store does not make the service unhealthy: requests are
    still served with in-process rate limiting and uncached reads.

    Returns:
        dict: Status summary with "status", "uptime_s", "store" and
            "rate_limiter" keys.
    """

    started_at = getattr(request.app.state, "started_at", time.monotonic())
    limiter = getattr(request.app.state, "rate_limiter", None)
    return {
        "status": "ok",
        "uptime_s": round(time.monotonic() - started_at, 3),
        "store": _store_status(request),
        "rate_limiter": limiter.state.value if limiter is not None else "disabled",
    }


@router.get("/health/ready")
def readiness(request: Request) -> JSONResponse:
    """Readiness probe: 503 while the shared store is unreachable."""

    store = _store_status(request)
    status_code = 503 if store == "down" else 200
    return JSONResponse(
        status_code=status_code,
        content={"status": "ready" if status_code == 200 else "not_ready", "store": store},
    )


@router.get("/health/live")
def liveness() -> dict:
    return {"status": "alive"}
