"""
Health check endpoints.
"""

import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "underground"}


@router.get("/readyz")
async def readyz(request: Request):
    """Readiness check against the document store."""
    t0 = time.time()
    try:
        store_health = await request.app.state.store.health_check()
        is_healthy = bool(store_health.get("healthy", False))
        check = {
            "ok": is_healthy,
            "latency_ms": round((time.time() - t0) * 1000, 1),
            "backend": store_health.get("service"),
        }
    except Exception as e:
        is_healthy = False
        check = {"ok": False, "error": f"{type(e).__name__}: {e}"}

    body = {"status": "ready" if is_healthy else "not_ready", "checks": {"store": check}}
    return JSONResponse(body, status_code=200 if is_healthy else 503)
