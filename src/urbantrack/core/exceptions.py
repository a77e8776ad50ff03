"""Error taxonomy for sample processing and registration."""

from __future__ import annotations

from urbantrack.core.constants import REASON_INVALID, REASON_SPEED, REASON_UNKNOWN_RIDER


class TelemetryError(Exception):
    """A position sample was rejected. ``reason`` is reported in the ack."""

    reason = "error"

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


class InvalidSampleError(TelemetryError):
    """Missing rider id or missing/non-numeric coordinates."""

    reason = REASON_INVALID


class UnknownRiderError(TelemetryError):
    """Rider id is not registered."""

    reason = REASON_UNKNOWN_RIDER

    def __init__(self, rider_id: str) -> None:
        self.rider_id = rider_id
        super().__init__(f"Unknown rider: {rider_id}")


class SpeedRejectedError(TelemetryError):
    """Implied speed between two fixes exceeds the configured ceiling."""

    reason = REASON_SPEED

    def __init__(self, speed_kmh: float, max_speed_kmh: float) -> None:
        self.speed_kmh = speed_kmh
        self.max_speed_kmh = max_speed_kmh
        super().__init__(f"Implied speed {speed_kmh:.1f} km/h exceeds {max_speed_kmh:.1f} km/h")


class RegistrationError(Exception):
    """Login/registration error with HTTP status hint."""

    def __init__(self, detail: str, status_code: int = 400) -> None:
        self.detail = detail
        self.status_code = status_code
        super().__init__(detail)
