"""Challenge tracker — time-windowed distance goals.

Each (rider, challenge) pair holds progress for one window. A window is a
UTC calendar day for daily challenges, or the ISO week (keyed by its
Monday) for weekly ones. Progress resets whenever a sample falls in a
different window than the stored one, including zero-distance refreshes.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from typing import Any

from urbantrack.core.constants import CHALLENGE_BONUS_PER_KM
from urbantrack.core.models import Challenge, ChallengeProgress

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChallengeCompleted:
    challenge_id: str
    rider_id: str
    bonus_points: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "challenge_completed",
            "challengeId": self.challenge_id,
            "riderId": self.rider_id,
            "bonusPoints": self.bonus_points,
        }


# ── Window helpers ──────────────────────────────────────────────────


def utc_date(ts_ms: int) -> date:
    return datetime.fromtimestamp(ts_ms / 1000, tz=UTC).date()


def get_monday(d: date) -> date:
    """Monday of the ISO week containing *d*."""
    return d - timedelta(days=d.weekday())


def window_key(period: str, ts_ms: int) -> str:
    """Window identifier for *period* at *ts_ms*, as an ISO date string."""
    day = utc_date(ts_ms)
    if period == "daily":
        return day.isoformat()
    if period == "weekly":
        return get_monday(day).isoformat()
    raise ValueError(f"Unknown challenge period: {period}")


def completion_bonus(target_meters: float, bonus_per_km: int = CHALLENGE_BONUS_PER_KM) -> int:
    return math.floor(target_meters / 1000) * bonus_per_km


# ── Tracker ─────────────────────────────────────────────────────────


class ChallengeTracker:
    """Advances every challenge for a rider on each accepted sample."""

    def __init__(
        self,
        challenges: Iterable[Challenge],
        bonus_per_km: int = CHALLENGE_BONUS_PER_KM,
    ) -> None:
        self.challenges = {c.id: c for c in challenges}
        self.bonus_per_km = bonus_per_km

    def advance(
        self,
        progress: ChallengeProgress,
        challenge: Challenge,
        delta_meters: float,
        ts_ms: int,
    ) -> bool:
        """Roll the window if needed and add *delta_meters*.

        Returns True only on the sample that completes the current window.
        """
        key = window_key(challenge.period, ts_ms)
        if progress.window_key != key:
            progress.reset(key)

        if progress.completed:
            return False

        progress.progress_meters += delta_meters
        if progress.progress_meters >= challenge.target_meters:
            progress.completed = True
            progress.completed_at = ts_ms
            return True
        return False

    def update(self, rider: Any, delta_meters: float, ts_ms: int) -> list[ChallengeCompleted]:
        """Update all challenge progress on *rider*, crediting completion bonuses."""
        events: list[ChallengeCompleted] = []
        for cid, challenge in self.challenges.items():
            progress = rider.challenges.setdefault(cid, ChallengeProgress())
            if not self.advance(progress, challenge, delta_meters, ts_ms):
                continue

            bonus = completion_bonus(challenge.target_meters, self.bonus_per_km)
            rider.score += bonus
            events.append(ChallengeCompleted(challenge_id=cid, rider_id=rider.id, bonus_points=bonus))
            logger.info(
                "Rider %s completed %s (window %s, +%d)",
                rider.id,
                cid,
                progress.window_key,
                bonus,
            )
        return events
