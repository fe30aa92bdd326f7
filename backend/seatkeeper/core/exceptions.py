"""
Reservation error taxonomy.

Every failure the reservation core can report is one of these classes. Each
carries a stable machine-readable `code` and the HTTP status the API layer
answers with, so handlers never have to inspect messages.
"""

from typing import Any, Dict, Optional


class ReservationError(Exception):
    """Base exception for seat reservation failures"""

    code = "RESERVATION_ERROR"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class SeatNotFound(ReservationError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, seat_number: str):
        super().__init__(f"Seat {seat_number} not found", {"seat_number": seat_number})


class SeatOccupied(ReservationError):
    """Seat is held, whether it was seen held or lost to a concurrent reserve."""

    code = "SEAT_OCCUPIED"
    status_code = 409

    def __init__(self, seat_number: str):
        super().__init__("Seat is already occupied", {"seat_number": seat_number})


class AlreadyHasReservation(ReservationError):
    code = "ALREADY_HAS_RESERVATION"
    status_code = 409

    def __init__(self, current_seat: Optional[str]):
        super().__init__(
            "You already have a seat reservation",
            {"current_seat": current_seat},
        )

    @property
    def current_seat(self) -> Optional[str]:
        return self.details.get("current_seat")


class InvalidHours(ReservationError):
    code = "INVALID_HOURS"
    status_code = 400

    def __init__(self, hours: Any, minimum: int, maximum: int):
        super().__init__(
            f"Hours must be between {minimum} and {maximum}",
            {"hours": hours, "min": minimum, "max": maximum},
        )


class NotAuthorized(ReservationError):
    code = "NOT_AUTHORIZED"
    status_code = 403

    def __init__(self, message: str = "Not authorized to release this seat", details: Optional[Dict] = None):
        super().__init__(message, details)


class StorageUnavailable(ReservationError):
    """The seat store could not be reached. The only kind that is ever retried (by the next sweep)."""

    code = "STORAGE_UNAVAILABLE"
    status_code = 503

    def __init__(self, operation: str, error: Optional[BaseException] = None):
        details = {"operation": operation}
        if error is not None:
            details["error"] = type(error).__name__
        super().__init__("Seat storage is unavailable", details)
