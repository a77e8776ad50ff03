"""API middleware: CORS, security headers, rate limiting, request logging."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from urbantrack.core.logging import set_correlation_id

logger = logging.getLogger(__name__)

# ── In-memory rate limit store (per-process) ────────────────────────

_rate_buckets: dict[str, list[float]] = {}
_last_sweep = 0.0

RATE_LIMIT_WINDOW = 60  # seconds


def _sweep_rate_buckets(now: float) -> None:
    """Forget clients with no request inside the current window."""
    global _last_sweep
    window_start = now - RATE_LIMIT_WINDOW
    for key in [k for k, b in _rate_buckets.items() if not b or b[-1] <= window_start]:
        del _rate_buckets[key]
    _last_sweep = now


def _check_rate_limit(key: str, limit: int) -> tuple[bool, int]:
    """Return (allowed, remaining) for a given key and per-minute limit."""
    now = time.time()
    if now - _last_sweep >= RATE_LIMIT_WINDOW:
        _sweep_rate_buckets(now)
    window_start = now - RATE_LIMIT_WINDOW
    bucket = [t for t in _rate_buckets.get(key, ()) if t > window_start]
    _rate_buckets[key] = bucket
    if len(bucket) >= limit:
        return False, 0
    bucket.append(now)
    return True, limit - len(bucket)


def _get_client_key(request: Request) -> str:
    """Build rate-limit key from client IP."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


# ── Security Headers ───────────────────────────────────────────────

SECURITY_HEADERS: dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}

HSTS_HEADER = "max-age=31536000; includeSubDomains"


def setup_middleware(app: FastAPI) -> None:
    """Attach all middleware to the FastAPI app."""
    settings = getattr(app.state, "settings", None)
    is_prod = settings.is_production if settings else False

    app.add_middleware(GZipMiddleware, minimum_size=500)

    origins = _get_cors_origins(settings)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def security_and_logging(  # type: ignore[no-untyped-def]
        request: Request, call_next
    ):
        correlation_id = request.headers.get("x-correlation-id", uuid.uuid4().hex[:12])
        set_correlation_id(correlation_id)

        rate_result = _apply_rate_limit(request, settings)
        if rate_result is not None:
            return rate_result

        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed = (time.perf_counter() - start) * 1000

        response.headers["X-Request-ID"] = correlation_id
        response.headers["X-Response-Time"] = f"{elapsed:.1f}ms"

        for header, value in SECURITY_HEADERS.items():
            response.headers[header] = value

        if is_prod:
            response.headers["Strict-Transport-Security"] = HSTS_HEADER

        logger.info(
            "[%s] %s %s → %d (%.1fms)",
            correlation_id,
            request.method,
            request.url.path,
            response.status_code,
            elapsed,
        )

        return response


def _get_cors_origins(settings: Any) -> list[str]:
    """Resolve CORS origins from settings."""
    if settings is None:
        return ["*"]
    return list(settings.cors_origin_list)


def _apply_rate_limit(request: Request, settings: Any) -> JSONResponse | None:
    """Per-client limit on /api routes. Returns error response if exceeded."""
    if settings is None or getattr(settings, "is_testing", False):
        return None

    if not request.url.path.startswith("/api/"):
        return None

    limit = getattr(settings, "rate_limit_anonymous", 60)
    rate_key = f"anon:{_get_client_key(request)}"

    allowed, _remaining = _check_rate_limit(rate_key, limit)
    if not allowed:
        return JSONResponse(
            status_code=429,
            content={"ok": False, "error": "rate_limited"},
            headers={
                "Retry-After": str(RATE_LIMIT_WINDOW),
                "X-RateLimit-Limit": str(limit),
                "X-RateLimit-Remaining": "0",
            },
        )
    return None
