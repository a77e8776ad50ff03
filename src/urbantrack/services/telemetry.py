"""Telemetry engine — turns raw position samples into rider state and events.

Pipeline for one sample::

    parse → resolve rider → anti-cheat gate → scoring → challenges → commit

The whole pipeline runs under the rider's lock. Rejections are raised as
:class:`~urbantrack.core.exceptions.TelemetryError` internally and turned
into ack data by :meth:`TelemetryEngine.submit`; no exception leaves it.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from urbantrack.core.exceptions import (
    InvalidSampleError,
    SpeedRejectedError,
    TelemetryError,
    UnknownRiderError,
)
from urbantrack.core.models import HistoryEntry, Position, Rider
from urbantrack.repositories.rider_store import RiderStore
from urbantrack.services.anti_cheat import AntiCheatFilter
from urbantrack.services.challenges import ChallengeCompleted, ChallengeTracker
from urbantrack.services.scoring import Badge, KmAward, ScoringEngine

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class SampleOutcome:
    """Everything derived from one accepted sample."""

    rider: Rider
    position: Position
    delta_meters: float
    km: KmAward
    new_badges: list[Badge] = field(default_factory=list)
    challenge_events: list[ChallengeCompleted] = field(default_factory=list)

    @property
    def has_game_events(self) -> bool:
        return self.km.km_gained > 0 or bool(self.new_badges) or bool(self.challenge_events)


# ── Parsing ─────────────────────────────────────────────────────────


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def parse_sample(payload: Any, received_ms: int) -> tuple[str, Position]:
    """Validate a decoded position payload.

    ``ts`` defaults to *received_ms* when absent.
    """
    if not isinstance(payload, dict):
        raise InvalidSampleError("Payload must be an object")

    rider_id = payload.get("id")
    if not isinstance(rider_id, str) or not rider_id:
        raise InvalidSampleError("Missing rider id")

    lat, lon = payload.get("lat"), payload.get("lon")
    if not _is_number(lat) or not _is_number(lon):
        raise InvalidSampleError("Coordinates must be numbers")
    if not (-90 <= lat <= 90 and -180 <= lon <= 180):
        raise InvalidSampleError("Coordinates out of range")

    ts = payload.get("ts")
    if ts is None:
        ts = received_ms
    elif not _is_number(ts):
        raise InvalidSampleError("Timestamp must be a number")
    try:
        datetime.fromtimestamp(ts / 1000, tz=UTC)
    except (OverflowError, OSError, ValueError):
        raise InvalidSampleError("Timestamp out of range") from None

    return rider_id, Position(lat=float(lat), lon=float(lon), ts=int(ts))


# ── Engine ──────────────────────────────────────────────────────────


class TelemetryEngine:
    """Processes position samples for registered riders.

    Receives its collaborators via ``__init__``; the optional *dispatcher*
    is any object with ``dispatch(outcome)``.
    """

    def __init__(
        self,
        store: RiderStore,
        anti_cheat: AntiCheatFilter,
        scoring: ScoringEngine,
        challenges: ChallengeTracker,
        dispatcher: Any | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.anti_cheat = anti_cheat
        self.scoring = scoring
        self.challenges = challenges
        self.dispatcher = dispatcher
        self.clock = clock

    def submit(self, payload: Any) -> dict[str, Any]:
        """Process one decoded payload and return the ack result."""
        try:
            rider_id, position = parse_sample(payload, self.clock())
            outcome = self.process(rider_id, position)
        except TelemetryError as exc:
            if isinstance(exc, InvalidSampleError):
                logger.info("Invalid position sample: %s", exc.detail)
            return {"accepted": False, "reason": exc.reason}

        if self.dispatcher is not None:
            self.dispatcher.dispatch(outcome)
        return {"accepted": True, "id": outcome.rider.id}

    def process(self, rider_id: str, position: Position) -> SampleOutcome:
        """Apply one validated sample, raising on rejection."""
        try:
            with self.store.locked(rider_id):
                rider = self.store.resolve(rider_id)
                try:
                    movement = self.anti_cheat.check(rider.last, position)
                except SpeedRejectedError as exc:
                    rider.suspicious += 1
                    self.store.commit(rider)
                    logger.warning(
                        "Speed rejection for rider %s: %.1f km/h (count=%d)",
                        rider_id,
                        exc.speed_kmh,
                        rider.suspicious,
                    )
                    raise

                prev_distance = rider.distance
                if movement.advances:
                    rider.distance = prev_distance + movement.delta_meters
                    rider.last = position
                    rider.history.append(
                        HistoryEntry(
                            lat=position.lat,
                            lon=position.lon,
                            ts=position.ts,
                            meters=round(movement.delta_meters),
                        )
                    )

                km, badges = self.scoring.apply(rider, prev_distance)
                events = self.challenges.update(rider, movement.delta_meters, position.ts)
                rider.updated_at = self.clock()

                self.store.commit(rider)
        except UnknownRiderError:
            logger.info("Position for unknown rider %s rejected", rider_id)
            raise

        return SampleOutcome(
            rider=rider,
            position=position,
            delta_meters=movement.delta_meters,
            km=km,
            new_badges=badges,
            challenge_events=events,
        )
