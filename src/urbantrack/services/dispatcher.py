"""Event dispatcher — fans accepted updates out to every connected observer.

Each observer gets a bounded outbound queue drained by its own sender
task. Publishing only ever calls ``put_nowait``, so a slow or dead
observer can never stall sample ingestion; it is pruned instead.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Protocol

from urbantrack.core.constants import OBSERVER_QUEUE_SIZE

logger = logging.getLogger(__name__)


class Transport(Protocol):
    async def send_text(self, data: str) -> None: ...


# ── Event construction ──────────────────────────────────────────────


def rider_update_event(outcome: Any) -> dict[str, Any]:
    rider = outcome.rider
    last = rider.last or outcome.position
    return {
        "type": "rider_update",
        "rider": {
            "id": rider.id,
            "name": rider.name,
            "lat": last.lat,
            "lon": last.lon,
            "distance": round(rider.distance),
            "score": rider.score,
        },
    }


def game_event(outcome: Any) -> dict[str, Any]:
    return {
        "type": "game_event",
        "riderId": outcome.rider.id,
        "name": outcome.rider.name,
        "kmsGained": outcome.km.km_gained,
        "pointsGained": outcome.km.points_gained,
        "newBadges": [badge.to_dict() for badge in outcome.new_badges],
        "challengeEvents": [event.to_dict() for event in outcome.challenge_events],
    }


def build_events(outcome: Any) -> list[dict[str, Any]]:
    """``rider_update`` always, then ``game_event`` if anything was earned."""
    events = [rider_update_event(outcome)]
    if outcome.has_game_events:
        events.append(game_event(outcome))
    return events


# ── Fan-out ─────────────────────────────────────────────────────────


@dataclass
class Observer:
    """A connected subscriber and its outbound queue."""

    conn_id: str
    transport: Transport
    queue: asyncio.Queue[str]
    connected_at: float = field(default_factory=time.time)
    messages_sent: int = 0
    task: asyncio.Task[None] | None = None


class EventDispatcher:
    """Manages the prunable set of observers.

    Thread-safe for asyncio via single-threaded event loop.
    """

    def __init__(self, queue_size: int = OBSERVER_QUEUE_SIZE) -> None:
        self.queue_size = queue_size
        self._observers: dict[str, Observer] = {}

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def connect(self, conn_id: str, transport: Transport, greeting: dict[str, Any] | None = None) -> Observer:
        """Register an observer and start its sender task.

        *greeting* (the state snapshot) is queued ahead of any broadcast.
        Must be called from inside the running event loop.
        """
        observer = Observer(
            conn_id=conn_id,
            transport=transport,
            queue=asyncio.Queue(maxsize=self.queue_size),
        )
        if greeting is not None:
            observer.queue.put_nowait(json.dumps(greeting))
        observer.task = asyncio.get_running_loop().create_task(self._pump(observer))
        self._observers[conn_id] = observer
        logger.info("Observer connected: %s (%d total)", conn_id, len(self._observers))
        return observer

    def disconnect(self, conn_id: str) -> None:
        """Drop an observer; unknown ids are a no-op."""
        observer = self._observers.pop(conn_id, None)
        if observer is None:
            return
        current = asyncio.current_task() if _loop_running() else None
        if observer.task is not None and observer.task is not current:
            observer.task.cancel()
        logger.info("Observer disconnected: %s (%d total)", conn_id, len(self._observers))

    def publish(self, message: dict[str, Any]) -> int:
        """Queue *message* for every observer. Returns how many accepted it."""
        payload = json.dumps(message)
        queued = 0
        overflowed: list[str] = []

        for conn_id, observer in list(self._observers.items()):
            try:
                observer.queue.put_nowait(payload)
                queued += 1
            except asyncio.QueueFull:
                overflowed.append(conn_id)

        for conn_id in overflowed:
            logger.warning("Observer %s is not keeping up, dropping it", conn_id)
            self.disconnect(conn_id)

        return queued

    def send_to(self, conn_id: str, message: dict[str, Any]) -> bool:
        """Queue *message* for one observer only (acks, errors)."""
        observer = self._observers.get(conn_id)
        if observer is None:
            return False
        try:
            observer.queue.put_nowait(json.dumps(message))
        except asyncio.QueueFull:
            logger.warning("Observer %s is not keeping up, dropping it", conn_id)
            self.disconnect(conn_id)
            return False
        return True

    def dispatch(self, outcome: Any) -> None:
        """Publish the broadcast events for one accepted sample, in order."""
        for event in build_events(outcome):
            self.publish(event)

    async def close(self) -> None:
        """Disconnect everyone and wait for sender tasks to finish."""
        tasks = [o.task for o in self._observers.values() if o.task is not None]
        for conn_id in list(self._observers):
            self.disconnect(conn_id)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _pump(self, observer: Observer) -> None:
        while True:
            payload = await observer.queue.get()
            try:
                await observer.transport.send_text(payload)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.debug("Send to %s failed, pruning", observer.conn_id, exc_info=True)
                self.disconnect(observer.conn_id)
                return
            observer.messages_sent += 1

    def get_stats(self) -> dict[str, Any]:
        return {
            "observers": len(self._observers),
            "queued": {cid: o.queue.qsize() for cid, o in self._observers.items() if o.queue.qsize()},
        }


def _loop_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True
