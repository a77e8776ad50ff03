"""Rider store — authoritative in-memory rider, user and challenge tables.

Concurrency discipline:

* every rider id owns a ``threading.Lock``; the engine holds it for the
  whole resolve → filter → score → commit sequence, so samples for one
  rider are serialized while different riders never contend;
* ``resolve`` hands out a deep copy and ``commit`` swaps the stored
  reference, so readers never observe a half-applied update;
* the registry lock only guards the dictionaries themselves (registration
  and snapshot copies), never sample processing.
"""

from __future__ import annotations

import copy
import logging
import threading
import uuid
from collections import deque
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any

from urbantrack.core.constants import RECENT_HISTORY_CAPACITY
from urbantrack.core.exceptions import UnknownRiderError
from urbantrack.core.models import Challenge, Rider

logger = logging.getLogger(__name__)


class RiderStore:
    def __init__(
        self,
        challenges: Iterable[Challenge] = (),
        history_capacity: int = RECENT_HISTORY_CAPACITY,
    ) -> None:
        self.history_capacity = history_capacity
        self._riders: dict[str, Rider] = {}
        self._users: dict[str, dict[str, Any]] = {}  # email -> user record
        self._challenges: dict[str, Challenge] = {c.id: c for c in challenges}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    # ── Construction from persisted state ───────────────────────────

    @classmethod
    def from_state(
        cls,
        state: dict[str, Any],
        challenges: Iterable[Challenge] = (),
        history_capacity: int = RECENT_HISTORY_CAPACITY,
    ) -> RiderStore:
        """Rebuild a store from a loaded snapshot, seeding missing challenges."""
        store = cls(history_capacity=history_capacity)

        for cid, raw in (state.get("challenges") or {}).items():
            try:
                store._challenges[cid] = Challenge.from_dict(raw)
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed challenge %s in snapshot", cid)
        for challenge in challenges:
            if challenge.id not in store._challenges:
                store._challenges[challenge.id] = challenge
                logger.info("Seeded challenge %s", challenge.id)

        for rid, raw in (state.get("riders") or {}).items():
            try:
                rider = Rider.from_dict(raw, history_capacity=history_capacity)
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed rider %s in snapshot", rid)
                continue
            store._riders[rider.id] = rider
            store._locks[rider.id] = threading.Lock()

        for email, user in (state.get("users") or {}).items():
            if isinstance(user, dict) and user.get("id") in store._riders:
                store._users[email] = dict(user)

        logger.info(
            "Rider store loaded: %d riders, %d challenges",
            len(store._riders),
            len(store._challenges),
        )
        return store

    # ── Read access ─────────────────────────────────────────────────

    def __len__(self) -> int:
        return len(self._riders)

    def __contains__(self, rider_id: object) -> bool:
        return rider_id in self._riders

    @property
    def challenges(self) -> list[Challenge]:
        return list(self._challenges.values())

    def get_user(self, email: str) -> dict[str, Any] | None:
        user = self._users.get(email)
        return dict(user) if user else None

    def resolve(self, rider_id: str) -> Rider:
        """Return a private copy of the rider or raise :class:`UnknownRiderError`."""
        rider = self._riders.get(rider_id)
        if rider is None:
            raise UnknownRiderError(rider_id)
        return copy.deepcopy(rider)

    def riders(self) -> list[Rider]:
        """Committed rider states (treat as read-only)."""
        with self._registry_lock:
            return list(self._riders.values())

    # ── Write access ────────────────────────────────────────────────

    @contextmanager
    def locked(self, rider_id: str) -> Iterator[None]:
        """Serialize work on one rider id."""
        lock = self._locks.get(rider_id)
        if lock is None:
            raise UnknownRiderError(rider_id)
        with lock:
            yield

    def commit(self, rider: Rider) -> None:
        """Replace the stored state of an existing rider."""
        if rider.id not in self._riders:
            raise UnknownRiderError(rider.id)
        self._riders[rider.id] = rider

    def _new_rider_id(self) -> str:
        """Short random id not already taken; caller holds the registry lock."""
        while True:
            rider_id = uuid.uuid4().hex[:10]
            if rider_id not in self._riders:
                return rider_id

    def register(self, email: str, pseudo: str, now_ms: int) -> tuple[dict[str, Any], bool]:
        """Return the user for *email*, creating it and its rider on first use."""
        with self._registry_lock:
            user = self._users.get(email)
            if user is not None:
                return dict(user), False

            rider_id = self._new_rider_id()
            user = {"id": rider_id, "email": email, "pseudo": pseudo, "createdAt": now_ms}
            self._riders[rider_id] = Rider(
                id=rider_id,
                name=pseudo,
                history=deque(maxlen=self.history_capacity),
                created_at=now_ms,
            )
            self._locks[rider_id] = threading.Lock()
            self._users[email] = user
        logger.info("Registered rider %s", rider_id)
        return dict(user), True

    # ── Snapshot ────────────────────────────────────────────────────

    def snapshot(self) -> dict[str, Any]:
        """JSON-ready copy of the whole state.

        Each rider lock is held only while that rider is serialized.
        """
        with self._registry_lock:
            rider_ids = list(self._riders)
            users = {email: dict(user) for email, user in self._users.items()}

        riders: dict[str, Any] = {}
        for rid in rider_ids:
            with self._locks[rid]:
                riders[rid] = self._riders[rid].to_dict()

        return {
            "riders": riders,
            "users": users,
            "challenges": {cid: c.to_dict() for cid, c in self._challenges.items()},
        }

    def public_snapshot(self) -> dict[str, Any]:
        """Riders and challenges only, for observers."""
        state = self.snapshot()
        return {"riders": state["riders"], "challenges": state["challenges"]}
