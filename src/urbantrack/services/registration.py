"""Registration service — email-only login that creates riders."""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from typing import Any

from urbantrack.core.constants import PSEUDO_MAX_LENGTH
from urbantrack.core.exceptions import RegistrationError
from urbantrack.repositories.rider_store import RiderStore
from urbantrack.services.telemetry import now_ms

logger = logging.getLogger(__name__)


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def normalize_pseudo(pseudo: str | None) -> str:
    """Trim and truncate; fall back to a random ``Rider-xxxxxx`` label."""
    cleaned = (pseudo or "").strip()[:PSEUDO_MAX_LENGTH]
    return cleaned or f"Rider-{secrets.token_hex(3)}"


class RegistrationService:
    """The single entry point that creates riders.

    Receives the store via ``__init__`` — no global state.
    """

    def __init__(self, store: RiderStore, clock: Callable[[], int] = now_ms) -> None:
        self.store = store
        self.clock = clock

    def login(self, email: str | None, pseudo: str | None = None) -> dict[str, Any]:
        """Return ``{id, pseudo}`` for *email*, registering it on first login.

        The pseudo is only used at registration; later logins keep the
        rider's original display name.
        """
        email = normalize_email(email)
        if not email or "@" not in email:
            raise RegistrationError("invalid_email", status_code=400)

        user, created = self.store.register(email, normalize_pseudo(pseudo), self.clock())
        rider = self.store.resolve(user["id"])
        if not created:
            logger.debug("Returning rider %s logged in", rider.id)
        return {"id": rider.id, "pseudo": rider.name}
