"""Shared pytest fixtures and test configuration."""

from __future__ import annotations

import os
import sys
from collections.abc import Callable
from typing import Any

import pytest
from fastapi.testclient import TestClient

# Ensure src is on the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from urbantrack.core.constants import DEFAULT_CHALLENGES  # noqa: E402
from urbantrack.core.models import Challenge  # noqa: E402
from urbantrack.repositories.rider_store import RiderStore  # noqa: E402
from urbantrack.services.anti_cheat import AntiCheatFilter  # noqa: E402
from urbantrack.services.challenges import ChallengeTracker  # noqa: E402
from urbantrack.services.scoring import ScoringEngine  # noqa: E402
from urbantrack.services.telemetry import TelemetryEngine  # noqa: E402

# 2024-01-10 (a Wednesday) 12:00:00 UTC
BASE_TS = 1_704_888_000_000

# One degree of latitude is ~111.195 km on a 6,371 km sphere
METERS_PER_DEG_LAT = 6_371_000 * 3.141592653589793 / 180


def north_of(lat: float, meters: float) -> float:
    """Latitude *meters* due north of *lat*."""
    return lat + meters / METERS_PER_DEG_LAT


class RecordingDispatcher:
    """Collects dispatched outcomes instead of broadcasting them."""

    def __init__(self) -> None:
        self.outcomes: list[Any] = []

    def dispatch(self, outcome: Any) -> None:
        self.outcomes.append(outcome)


@pytest.fixture
def challenges() -> list[Challenge]:
    return [Challenge.from_dict(c) for c in DEFAULT_CHALLENGES]


@pytest.fixture
def store(challenges: list[Challenge]) -> RiderStore:
    return RiderStore(challenges=challenges)


@pytest.fixture
def register(store: RiderStore) -> Callable[..., str]:
    """Register a rider and return its id."""

    def _register(email: str = "rider@example.com", pseudo: str = "Rider") -> str:
        user, _created = store.register(email, pseudo, now_ms=BASE_TS)
        return user["id"]

    return _register


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def engine(store: RiderStore, dispatcher: RecordingDispatcher) -> TelemetryEngine:
    return TelemetryEngine(
        store=store,
        anti_cheat=AntiCheatFilter(),
        scoring=ScoringEngine(),
        challenges=ChallengeTracker(store.challenges),
        dispatcher=dispatcher,
        clock=lambda: BASE_TS,
    )


@pytest.fixture
def app(tmp_path):  # type: ignore[no-untyped-def]
    """Create a FastAPI test app backed by a temporary data file."""
    from urbantrack.core.config import Settings
    from urbantrack.main import create_app

    settings = Settings(app_env="testing", data_file=str(tmp_path / "data.json"))
    return create_app(settings=settings)


@pytest.fixture
def client(app):  # type: ignore[no-untyped-def]
    """Create a test client."""
    with TestClient(app) as test_client:
        yield test_client
