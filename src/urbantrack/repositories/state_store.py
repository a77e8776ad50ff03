"""JSON file persistence for the whole rider/user/challenge state."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

STATE_SECTIONS: tuple[str, ...] = ("riders", "users", "challenges")


def empty_state() -> dict[str, Any]:
    return {section: {} for section in STATE_SECTIONS}


class JsonStateStore:
    """Loads and saves state snapshots to a single JSON file.

    Failures never propagate: a missing or corrupt file loads as empty
    state, and a failed write is logged and reported as ``False``.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> dict[str, Any]:
        if not self.path.exists():
            logger.info("No state file at %s, starting fresh", self.path)
            return empty_state()

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError):
            logger.error("Could not parse %s, starting fresh", self.path, exc_info=True)
            return empty_state()

        if not isinstance(raw, dict):
            logger.error("State file %s is not a JSON object, starting fresh", self.path)
            return empty_state()

        state = empty_state()
        for section in STATE_SECTIONS:
            value = raw.get(section)
            if isinstance(value, dict):
                state[section] = value
        return state

    def save(self, state: dict[str, Any]) -> bool:
        """Atomically replace the state file. Returns True on success."""
        tmp_name: str | None = None
        try:
            payload = json.dumps(state, indent=2)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp_name, self.path)
            tmp_name = None
        except (OSError, TypeError, ValueError):
            logger.error("Failed to save state to %s", self.path, exc_info=True)
            return False
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)

        logger.debug("State saved to %s", self.path)
        return True
