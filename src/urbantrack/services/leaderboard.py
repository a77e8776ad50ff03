"""Leaderboard service — riders ranked by score."""

from __future__ import annotations

from typing import Any

from urbantrack.core.constants import LEADERBOARD_TOP_N


def rank_riders(riders: list[dict[str, Any]], limit: int = LEADERBOARD_TOP_N) -> list[dict[str, Any]]:
    """Rank serialized riders by score, highest first.

    Ties fall back to distance, then rider id, so ordering is deterministic.
    """
    entries = [
        {
            "id": r["id"],
            "name": r.get("name", ""),
            "distance": round(r.get("distance") or 0),
            "score": r.get("score") or 0,
        }
        for r in riders
    ]
    entries.sort(key=lambda e: (-e["score"], -e["distance"], e["id"]))
    return entries[:limit]


class LeaderboardService:
    def __init__(self, store: Any) -> None:
        self.store = store

    def get_leaderboard(self, limit: int = LEADERBOARD_TOP_N) -> list[dict[str, Any]]:
        return rank_riders([rider.to_dict() for rider in self.store.riders()], limit)
