"""Scoring engine — points per kilometer and distance-milestone badges."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from urbantrack.core.constants import BADGE_ID_PREFIX, BADGE_MILESTONES_METERS, POINTS_PER_KM

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KmAward:
    km_gained: int
    points_gained: int


@dataclass(frozen=True)
class Badge:
    id: str
    label: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "label": self.label}


# ── Pure calculators ────────────────────────────────────────────────


def calculate_km_award(
    prev_distance: float,
    new_distance: float,
    points_per_km: int = POINTS_PER_KM,
) -> KmAward:
    """Whole kilometers crossed between two cumulative distances.

    ``km_gained = floor(new/1000) - floor(prev/1000)``, clamped to >= 0.
    """
    km_gained = max(0, math.floor(new_distance / 1000) - math.floor(prev_distance / 1000))
    return KmAward(km_gained=km_gained, points_gained=km_gained * points_per_km)


def badge_id(milestone_m: int) -> str:
    return f"{BADGE_ID_PREFIX}{milestone_m}"


def badge_label(milestone_m: int) -> str:
    return f"{milestone_m / 1000:g} km"


def find_new_badges(
    prev_distance: float,
    new_distance: float,
    existing: Iterable[str],
    milestones: Iterable[int] = BADGE_MILESTONES_METERS,
) -> list[Badge]:
    """Badges for milestones crossed in ``(prev, new]`` and not yet held."""
    held = set(existing)
    earned: list[Badge] = []
    for milestone in milestones:
        bid = badge_id(milestone)
        if prev_distance < milestone <= new_distance and bid not in held:
            earned.append(Badge(id=bid, label=badge_label(milestone)))
            held.add(bid)
    return earned


# ── Engine ──────────────────────────────────────────────────────────


class ScoringEngine:
    """Applies kilometer points and milestone badges to a rider's totals."""

    def __init__(
        self,
        points_per_km: int = POINTS_PER_KM,
        milestones: Iterable[int] = BADGE_MILESTONES_METERS,
    ) -> None:
        self.points_per_km = points_per_km
        self.milestones = sorted(milestones)

    def award(self, prev_distance: float, new_distance: float) -> KmAward:
        return calculate_km_award(prev_distance, new_distance, self.points_per_km)

    def check_badges(
        self,
        prev_distance: float,
        new_distance: float,
        existing: Iterable[str],
    ) -> list[Badge]:
        return find_new_badges(prev_distance, new_distance, existing, self.milestones)

    def apply(self, rider: Any, prev_distance: float) -> tuple[KmAward, list[Badge]]:
        """Add points and badges earned moving from *prev_distance* to ``rider.distance``."""
        km = self.award(prev_distance, rider.distance)
        rider.score += km.points_gained

        badges = self.check_badges(prev_distance, rider.distance, rider.badges)
        for badge in badges:
            rider.badges.append(badge.id)
            logger.info("Rider %s earned %s", rider.id, badge.id)

        return km, badges
