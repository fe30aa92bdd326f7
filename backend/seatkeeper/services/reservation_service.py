"""
Reservation engine: reserve and release seats against the registry.

CONCURRENCY STRATEGY: check, then compare-and-set
==================================================

Rules:
  - A seat is held by at most one user (enforced by the registry's
    compare-and-set; two racing reserves on one seat get one winner)
  - A user holds at most one seat (checked here, before the write)

Reserve flow:
  1. Validate hours, look the seat up        -> InvalidHours / SeatNotFound
  2. Admin-only rooms                         -> NotAuthorized
  3. Seat already held?                       -> SeatOccupied
  4. Requester already holds a seat?          -> AlreadyHasReservation
  5. apply_hold(seat, user, now + hours)      -> None means we lost the race,
                                                 reported as SeatOccupied
  6. Post-commit check: if the requester now holds more than one seat,
     undo this hold and report AlreadyHasReservation

Known gap:
  Steps 4 and 5 are not atomic together. The same user firing two reserves
  for different seats at once can pass step 4 twice. Step 6 undoes the
  duplicate after the fact (and may undo both), but a second hold is
  briefly visible. Closing it fully needs a per-user serialisation point,
  e.g. a partial unique index on holder_id WHERE NOT is_available.

Nothing here retries: every rejection is a business answer the caller
must see.
"""

import time
from datetime import datetime, timedelta
from typing import Mapping, Optional

from seatkeeper.core.config import get_settings
from seatkeeper.core.exceptions import (
    AlreadyHasReservation,
    InvalidHours,
    NotAuthorized,
    ReservationError,
    SeatNotFound,
    SeatOccupied,
    StorageUnavailable,
)
from seatkeeper.core.logging import get_logger
from seatkeeper.core.metrics import (
    duplicate_hold_rollbacks,
    record_release,
    record_reservation_attempt,
    reservation_latency,
)
from seatkeeper.db.base import utcnow
from seatkeeper.models.seat import Room, Seat
from seatkeeper.services.interfaces.registry import SeatRegistry

logger = get_logger(__name__)


def validate_hours(hours) -> int:
    settings = get_settings()
    minimum, maximum = settings.MIN_RESERVATION_HOURS, settings.MAX_RESERVATION_HOURS
    if isinstance(hours, bool) or not isinstance(hours, int) or not minimum <= hours <= maximum:
        raise InvalidHours(hours, minimum, maximum)
    return hours


async def reserve_seat(
    registry: SeatRegistry,
    seat_number: str,
    user_id: str,
    hours: int,
    *,
    is_admin: bool = False,
    now: Optional[datetime] = None,
) -> Seat:
    """
    Hold `seat_number` for `user_id` for `hours` wall-clock hours.
    Raises a ReservationError subclass on every rejection.
    """
    started = time.perf_counter()
    try:
        seat = await _reserve(registry, seat_number, user_id, hours, is_admin, now or utcnow())
    except ReservationError as e:
        record_reservation_attempt(e.code.lower())
        logger.info(
            "seat_reserve_rejected",
            seat_number=seat_number,
            user_id=user_id,
            code=e.code,
            details=e.details,
        )
        raise
    finally:
        reservation_latency.observe(time.perf_counter() - started)

    record_reservation_attempt("reserved")
    logger.info(
        "seat_reserved",
        seat_number=seat.seat_number,
        user_id=user_id,
        hours=hours,
        reserved_until=seat.reserved_until.isoformat(),
    )
    return seat


async def _reserve(
    registry: SeatRegistry,
    seat_number: str,
    user_id: str,
    hours: int,
    is_admin: bool,
    now: datetime,
) -> Seat:
    settings = get_settings()
    hours = validate_hours(hours)

    seat = await registry.find_by_seat_number(seat_number)
    if seat is None:
        raise SeatNotFound(seat_number)

    if seat.room in settings.ADMIN_ONLY_ROOMS and not is_admin:
        raise NotAuthorized(
            f"Seats in the {seat.room} room can only be reserved by administrators",
            {"room": seat.room},
        )

    if not seat.is_available:
        raise SeatOccupied(seat_number)

    existing = await registry.find_by_holder(user_id)
    if existing is not None:
        raise AlreadyHasReservation(existing.seat_number)

    reserved_until = now + timedelta(hours=hours)
    held = await registry.apply_hold(seat_number, user_id, reserved_until)
    if held is None:
        # Someone else's hold landed between our read and our write
        raise SeatOccupied(seat_number)

    if settings.POST_COMMIT_DUPLICATE_CHECK:
        await _check_single_hold(registry, seat_number, user_id)

    return held


async def _check_single_hold(registry: SeatRegistry, seat_number: str, user_id: str) -> None:
    """Roll back the hold just committed on `seat_number` if `user_id` now holds two seats."""
    try:
        if await registry.count_held_by(user_id) <= 1:
            return
        await registry.apply_release(seat_number, expected_holder=user_id)
    except StorageUnavailable as e:
        # The hold is already committed; it may be a duplicate nobody rolled back
        logger.error(
            "duplicate_check_failed",
            seat_number=seat_number,
            user_id=user_id,
            hold_committed=True,
            operation=e.details.get("operation"),
        )
        raise

    duplicate_hold_rollbacks.inc()
    logger.warning("duplicate_hold_rolled_back", seat_number=seat_number, user_id=user_id)
    other = await registry.find_by_holder(user_id)
    raise AlreadyHasReservation(other.seat_number if other else None)


async def release_seat(
    registry: SeatRegistry,
    seat_number: str,
    requester_id: str,
    requester_is_admin: bool = False,
) -> Seat:
    """
    Return a held seat to the pool. Allowed for the holder and for admins.
    """
    seat = await registry.find_by_seat_number(seat_number)
    if seat is None:
        raise SeatNotFound(seat_number)

    if seat.is_available:
        raise NotAuthorized("Not authorized to release this seat or seat is not occupied")

    is_holder = seat.current_user == requester_id
    if not is_holder and not requester_is_admin:
        raise NotAuthorized()

    # Admins clear whatever is there; holders only clear their own hold
    released = await registry.apply_release(
        seat_number,
        expected_holder=None if requester_is_admin else requester_id,
    )
    if released is None:
        # The hold changed under us: reclaimed, or reclaimed and re-reserved
        current = await registry.find_by_seat_number(seat_number)
        if current is None:
            raise SeatNotFound(seat_number)
        if not current.is_available:
            raise NotAuthorized()
        released = current

    record_release(requester_is_admin and not is_holder)
    logger.info(
        "seat_released",
        seat_number=seat_number,
        released_by=requester_id,
        previous_holder=seat.current_user,
        admin_override=requester_is_admin and not is_holder,
    )
    return released


async def get_my_reservation(registry: SeatRegistry, user_id: str) -> Optional[Seat]:
    return await registry.find_by_holder(user_id)


async def list_seats(registry: SeatRegistry, room: Optional[Room] = None) -> list[Seat]:
    return await registry.list_by_room(room)


def room_layout(layout: Optional[Mapping[str, int]] = None) -> dict[Room, int]:
    """Parse a room -> seat count mapping (defaults to ROOM_LAYOUT)."""
    if layout is None:
        layout = get_settings().ROOM_LAYOUT
    parsed = {}
    for name, count in layout.items():
        room = Room(name)
        if count < 0:
            raise ValueError(f"Seat count for room {name} must not be negative")
        parsed[room] = count
    return parsed


async def initialize_seats(registry: SeatRegistry, layout: Optional[Mapping[str, int]] = None) -> int:
    """Wipe the pool and recreate it. Every existing hold is dropped."""
    specs = room_layout(layout)
    count = await registry.bulk_reinitialize(specs)
    logger.warning(
        "seats_initialized",
        count=count,
        layout={room.value: n for room, n in specs.items()},
    )
    return count


async def seed_seats_if_empty(registry: SeatRegistry) -> int:
    if await registry.count() > 0:
        return 0
    return await initialize_seats(registry)
