"""Domain constants for UrbanTrack."""

from __future__ import annotations

from typing import Any

# ── Geo ─────────────────────────────────────────────────────────────
EARTH_RADIUS_M = 6_371_000

# ── Anti-cheat ──────────────────────────────────────────────────────
MAX_SPEED_KMH = 140.0

# ── Scoring ─────────────────────────────────────────────────────────
POINTS_PER_KM = 10
BADGE_MILESTONES_METERS: list[int] = [1_000, 5_000, 10_000, 25_000, 50_000, 100_000]
BADGE_ID_PREFIX = "badge_"

# ── Challenges ──────────────────────────────────────────────────────
CHALLENGE_PERIODS: tuple[str, ...] = ("daily", "weekly")
CHALLENGE_BONUS_PER_KM = 5  # bonus = floor(target km) * 5

DEFAULT_CHALLENGES: list[dict[str, Any]] = [
    {"id": "daily_1km", "name": "1 km par jour", "period": "daily", "targetMeters": 1_000},
    {"id": "weekly_5km", "name": "5 km par semaine", "period": "weekly", "targetMeters": 5_000},
]

# ── Rider state ─────────────────────────────────────────────────────
RECENT_HISTORY_CAPACITY = 200
PSEUDO_MAX_LENGTH = 40

# ── Persistence ─────────────────────────────────────────────────────
SAVE_INTERVAL_SECONDS = 10
DEFAULT_DATA_FILE = "data.json"

# ── Fan-out ─────────────────────────────────────────────────────────
OBSERVER_QUEUE_SIZE = 256

# ── Leaderboard ─────────────────────────────────────────────────────
LEADERBOARD_TOP_N = 200

# ── Ack reasons ─────────────────────────────────────────────────────
REASON_INVALID = "invalid"
REASON_UNKNOWN_RIDER = "unknown_rider"
REASON_SPEED = "speed"
