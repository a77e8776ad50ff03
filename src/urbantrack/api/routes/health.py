"""Health check routes — liveness, readiness, and general health."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter()


@router.get("/health")
def health_check(request: Request) -> dict[str, Any]:
    """Application health check endpoint."""
    settings = getattr(request.app.state, "settings", None)
    env = settings.app_env if settings else "unknown"
    runtime = getattr(request.app.state, "runtime", None)

    return {
        "status": "ok",
        "environment": env,
        "riders": len(runtime.store) if runtime else 0,
        "observers": runtime.dispatcher.observer_count if runtime else 0,
    }


@router.get("/health/live")
def liveness_probe() -> dict[str, Any]:
    """Liveness probe — is the process alive and responding?"""
    return {"status": "alive"}


@router.get("/health/ready")
def readiness_probe(request: Request) -> Any:
    """Readiness probe — store loaded and last snapshot save succeeded.

    A failed save does not stop sample processing; it is reported here so
    operators notice before the next restart loses data.
    """
    checks: dict[str, Any] = {}
    overall_ready = True

    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        checks["store"] = {"status": "not_configured"}
        overall_ready = False
    else:
        checks["store"] = {"status": "ok", "riders": len(runtime.store)}
        last = runtime.snapshot_worker.last_result
        if last is None:
            checks["persistence"] = {"status": "pending"}
        elif last["success"]:
            checks["persistence"] = {"status": "ok", "riders_saved": last["riders_saved"]}
        else:
            checks["persistence"] = {"status": "error", "detail": "; ".join(last["errors"])}

    body = {
        "status": "ready" if overall_ready else "not_ready",
        "checks": checks,
    }
    if not overall_ready:
        return JSONResponse(content=body, status_code=503)
    return body
