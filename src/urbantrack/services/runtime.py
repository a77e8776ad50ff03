"""Wiring of the store, engine, dispatcher and persistence from settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from urbantrack.core.config import Settings
from urbantrack.core.models import Challenge
from urbantrack.repositories.rider_store import RiderStore
from urbantrack.repositories.state_store import JsonStateStore
from urbantrack.services.anti_cheat import AntiCheatFilter
from urbantrack.services.challenges import ChallengeTracker
from urbantrack.services.dispatcher import EventDispatcher
from urbantrack.services.leaderboard import LeaderboardService
from urbantrack.services.registration import RegistrationService
from urbantrack.services.scoring import ScoringEngine
from urbantrack.services.telemetry import TelemetryEngine
from urbantrack.workers.snapshot_worker import SnapshotWorker

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    settings: Settings
    store: RiderStore
    state_store: JsonStateStore
    dispatcher: EventDispatcher
    engine: TelemetryEngine
    registration: RegistrationService
    leaderboard: LeaderboardService
    snapshot_worker: SnapshotWorker


def configured_challenges(settings: Settings) -> list[Challenge]:
    """Challenge definitions from settings; invalid ones abort startup."""
    return [Challenge.from_dict(raw) for raw in settings.challenges]


def build_runtime(settings: Settings, load: bool = True) -> Runtime:
    """Load persisted state (unless *load* is False) and wire every component."""
    state_store = JsonStateStore(settings.data_file)
    state = state_store.load() if load else {}
    store = RiderStore.from_state(
        state,
        challenges=configured_challenges(settings),
        history_capacity=settings.history_capacity,
    )

    dispatcher = EventDispatcher()
    engine = TelemetryEngine(
        store=store,
        anti_cheat=AntiCheatFilter(max_speed_kmh=settings.max_speed_kmh),
        scoring=ScoringEngine(
            points_per_km=settings.points_per_km,
            milestones=settings.badge_milestones_m,
        ),
        challenges=ChallengeTracker(
            store.challenges,
            bonus_per_km=settings.challenge_bonus_per_km,
        ),
        dispatcher=dispatcher,
    )
    return Runtime(
        settings=settings,
        store=store,
        state_store=state_store,
        dispatcher=dispatcher,
        engine=engine,
        registration=RegistrationService(store),
        leaderboard=LeaderboardService(store),
        snapshot_worker=SnapshotWorker(store, state_store),
    )
