"""Anti-cheat filter — rejects fixes that imply an impossible speed."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from urbantrack.core.constants import MAX_SPEED_KMH
from urbantrack.core.exceptions import SpeedRejectedError
from urbantrack.core.models import Position
from urbantrack.services.geo import haversine_meters

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Movement:
    """Outcome of gating one fix against the previous accepted fix.

    ``advances`` is False for duplicate or out-of-order timestamps: the
    sample is accepted as a refresh but the last fix stays where it is.
    """

    delta_meters: float
    speed_kmh: float
    advances: bool


def implied_speed_kmh(delta_meters: float, elapsed_ms: int) -> float:
    """Speed in km/h over *elapsed_ms*; 0 when no time has elapsed."""
    dt = elapsed_ms / 1000
    if dt <= 0:
        return 0.0
    return delta_meters / dt * 3.6


class AntiCheatFilter:
    """Gates each new fix on the speed implied by the previous accepted fix."""

    def __init__(self, max_speed_kmh: float = MAX_SPEED_KMH) -> None:
        self.max_speed_kmh = max_speed_kmh

    def check(self, last: Position | None, new: Position) -> Movement:
        """Return the accepted movement or raise :class:`SpeedRejectedError`."""
        if last is None:
            # First fix for this rider
            return Movement(delta_meters=0.0, speed_kmh=0.0, advances=True)

        if new.ts <= last.ts:
            return Movement(delta_meters=0.0, speed_kmh=0.0, advances=False)

        delta = haversine_meters(last, new)
        speed = implied_speed_kmh(delta, new.ts - last.ts)
        if speed > self.max_speed_kmh:
            raise SpeedRejectedError(speed, self.max_speed_kmh)
        return Movement(delta_meters=delta, speed_kmh=speed, advances=True)
