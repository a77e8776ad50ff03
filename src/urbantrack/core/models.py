"""Rider and challenge state.

The ``to_dict``/``from_dict`` pairs use the on-disk field names of the
UrbanTrack data file (``last``, ``history``, ``distance``, ``lastReset`` ...)
so snapshots written by older servers load unchanged.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any

from urbantrack.core.constants import CHALLENGE_PERIODS, RECENT_HISTORY_CAPACITY


@dataclass(frozen=True)
class Position:
    """A single fix: degrees plus epoch milliseconds."""

    lat: float
    lon: float
    ts: int

    def to_dict(self) -> dict[str, Any]:
        return {"lat": self.lat, "lon": self.lon, "ts": self.ts}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Position:
        return cls(lat=float(data["lat"]), lon=float(data["lon"]), ts=int(data["ts"]))


@dataclass(frozen=True)
class HistoryEntry:
    lat: float
    lon: float
    ts: int
    meters: int

    def to_dict(self) -> dict[str, Any]:
        return {"lat": self.lat, "lon": self.lon, "ts": self.ts, "meters": self.meters}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HistoryEntry:
        return cls(
            lat=float(data["lat"]),
            lon=float(data["lon"]),
            ts=int(data["ts"]),
            meters=int(data.get("meters", 0)),
        )


@dataclass(frozen=True)
class Challenge:
    """Static challenge definition (daily or weekly distance goal)."""

    id: str
    name: str
    period: str
    target_meters: float

    def __post_init__(self) -> None:
        if self.period not in CHALLENGE_PERIODS:
            raise ValueError(f"Unknown challenge period {self.period!r} for {self.id}")
        if self.target_meters <= 0:
            raise ValueError(f"Challenge {self.id} needs a positive target")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "period": self.period,
            "targetMeters": self.target_meters,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Challenge:
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", data["id"])),
            period=str(data["period"]),
            target_meters=float(data["targetMeters"]),
        )


@dataclass
class ChallengeProgress:
    """Progress of one rider toward one challenge in the current window."""

    progress_meters: float = 0.0
    window_key: str | None = None
    completed: bool = False
    completed_at: int | None = None

    def reset(self, window_key: str) -> None:
        self.progress_meters = 0.0
        self.window_key = window_key
        self.completed = False
        self.completed_at = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "progressMeters": self.progress_meters,
            "lastReset": self.window_key,
            "completed": self.completed,
        }
        if self.completed_at is not None:
            data["completedAt"] = self.completed_at
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChallengeProgress:
        completed_at = data.get("completedAt")
        return cls(
            progress_meters=float(data.get("progressMeters", 0)),
            window_key=data.get("lastReset"),
            completed=bool(data.get("completed", False)),
            completed_at=int(completed_at) if completed_at is not None else None,
        )


@dataclass
class Rider:
    id: str
    name: str
    last: Position | None = None
    distance: float = 0.0
    score: int = 0
    badges: list[str] = field(default_factory=list)
    history: deque[HistoryEntry] = field(
        default_factory=lambda: deque(maxlen=RECENT_HISTORY_CAPACITY)
    )
    challenges: dict[str, ChallengeProgress] = field(default_factory=dict)
    suspicious: int = 0
    created_at: int | None = None
    updated_at: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "last": self.last.to_dict() if self.last else None,
            "history": [entry.to_dict() for entry in self.history],
            "distance": self.distance,
            "score": self.score,
            "badges": list(self.badges),
            "challenges": {cid: prog.to_dict() for cid, prog in self.challenges.items()},
            "suspicious": self.suspicious,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        history_capacity: int = RECENT_HISTORY_CAPACITY,
    ) -> Rider:
        last = data.get("last")
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            last=Position.from_dict(last) if last else None,
            distance=float(data.get("distance") or 0),
            score=int(data.get("score") or 0),
            badges=list(dict.fromkeys(data.get("badges") or [])),
            history=deque(
                (HistoryEntry.from_dict(h) for h in data.get("history") or []),
                maxlen=history_capacity,
            ),
            challenges={
                cid: ChallengeProgress.from_dict(prog)
                for cid, prog in (data.get("challenges") or {}).items()
            },
            suspicious=int(data.get("suspicious") or 0),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )
