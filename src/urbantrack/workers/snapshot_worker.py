"""Snapshot worker — periodic whole-state persistence.

Runs independently of sample processing: each pass copies the store
(holding each rider lock only for that rider's copy) and hands the copy
to the state store. Failures are logged and reported, never raised.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from urbantrack.core.constants import SAVE_INTERVAL_SECONDS

logger = logging.getLogger(__name__)


class SnapshotWorkerResult:
    """Result of a single worker run."""

    def __init__(self) -> None:
        self.riders_saved: int = 0
        self.elapsed_ms: float = 0.0
        self.errors: list[str] = []
        self.success: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "riders_saved": self.riders_saved,
            "elapsed_ms": round(self.elapsed_ms, 1),
            "errors": self.errors,
            "success": self.success,
        }


class SnapshotWorker:
    """Saves the rider store through a state store.

    Usage::

        worker = SnapshotWorker(store, JsonStateStore("data.json"))
        result = worker.run()
    """

    def __init__(self, store: Any, state_store: Any) -> None:
        self.store = store
        self.state_store = state_store
        self.last_result: dict[str, Any] | None = None

    def run(self) -> dict[str, Any]:
        """Snapshot and save once."""
        result = SnapshotWorkerResult()
        start = time.perf_counter()

        try:
            state = self.store.snapshot()
            result.riders_saved = len(state["riders"])
            if not self.state_store.save(state):
                result.errors.append("save failed")
                result.success = False
        except Exception as e:
            msg = f"Error snapshotting state: {e}"
            logger.error(msg, exc_info=True)
            result.errors.append(msg)
            result.success = False

        result.elapsed_ms = (time.perf_counter() - start) * 1000
        if result.success:
            logger.debug(
                "Snapshot saved: %d riders in %.1fms", result.riders_saved, result.elapsed_ms
            )
        self.last_result = result.to_dict()
        return self.last_result

    async def run_forever(self, interval_seconds: float = SAVE_INTERVAL_SECONDS) -> None:
        """Save every *interval_seconds* until cancelled."""
        logger.info("Snapshot worker started (every %.1fs)", interval_seconds)
        try:
            while True:
                await asyncio.sleep(interval_seconds)
                await asyncio.to_thread(self.run)
        except asyncio.CancelledError:
            logger.info("Snapshot worker stopped")
            raise
