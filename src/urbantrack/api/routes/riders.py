"""Rider snapshot routes — /api/riders and /api/leaderboard."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from urbantrack.api.deps import get_runtime
from urbantrack.api.schemas.riders import LeaderboardResponse
from urbantrack.core.constants import LEADERBOARD_TOP_N
from urbantrack.services.runtime import Runtime

router = APIRouter(prefix="/api", tags=["riders"])


@router.get("/riders")
def list_riders(runtime: Runtime = Depends(get_runtime)) -> dict[str, Any]:
    """Full state of every rider, keyed by id."""
    return {"ok": True, "riders": runtime.store.public_snapshot()["riders"]}


@router.get("/leaderboard", response_model=LeaderboardResponse)
def get_leaderboard(
    limit: int = Query(default=LEADERBOARD_TOP_N, ge=1, le=LEADERBOARD_TOP_N),
    runtime: Runtime = Depends(get_runtime),
) -> dict[str, Any]:
    """Riders ranked by score, highest first."""
    return {"ok": True, "leaderboard": runtime.leaderboard.get_leaderboard(limit)}
