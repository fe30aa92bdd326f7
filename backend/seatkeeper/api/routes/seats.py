"""
Seat endpoints: seat map, reserve, release, and pool maintenance.
"""

from fastapi import APIRouter, Depends, Query

from seatkeeper.core.exceptions import StorageUnavailable
from seatkeeper.core.logging import get_logger
from seatkeeper.core.security import Requester, get_current_requester, require_admin
from seatkeeper.schemas.seat import (
    CountResponse,
    MyReservationResponse,
    ReserveRequest,
    RoomFilter,
    SeatActionResponse,
    SeatListResponse,
    SeatResponse,
)
from seatkeeper.services.cache_service import get_cached_seats, invalidate_seat_cache, set_cached_seats
from seatkeeper.services.interfaces.registry import SeatRegistry
from seatkeeper.services.reclaimer import ExpiryReclaimer
from seatkeeper.services.registry_factory import get_reclaimer, get_registry
from seatkeeper.services.reservation_service import (
    get_my_reservation,
    initialize_seats,
    list_seats,
    release_seat,
    reserve_seat,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/seats", tags=["Seats"])


@router.get("/", response_model=SeatListResponse)
async def list_seats_endpoint(
    room: RoomFilter = Query(RoomFilter.ALL),
    registry: SeatRegistry = Depends(get_registry),
):
    """
    Seat map, optionally filtered by room, ordered by seat number.
    Served from Redis for a few seconds; invalidated on every change.
    """
    cached = await get_cached_seats(room.value)
    if cached is not None:
        return SeatListResponse(seats=[SeatResponse(**s) for s in cached], cached=True)

    seats = [SeatResponse.from_seat(s) for s in await list_seats(registry, room.to_room())]
    await set_cached_seats(room.value, [s.model_dump(mode="json") for s in seats])
    return SeatListResponse(seats=seats)


@router.get("/my-reservation", response_model=MyReservationResponse)
async def my_reservation_endpoint(
    requester: Requester = Depends(get_current_requester),
    registry: SeatRegistry = Depends(get_registry),
):
    """The caller's current hold, or null."""
    seat = await get_my_reservation(registry, requester.user_id)
    return MyReservationResponse(seat=SeatResponse.from_seat(seat) if seat else None)


@router.post("/initialize", response_model=CountResponse)
async def initialize_endpoint(
    admin: Requester = Depends(require_admin),
    registry: SeatRegistry = Depends(get_registry),
):
    """Wipe and regenerate the seat pool. Admin only."""
    count = await initialize_seats(registry)
    await invalidate_seat_cache()
    logger.info("seat_pool_reset_by_admin", admin_id=admin.user_id, count=count)
    return CountResponse(message="Seats initialized successfully", count=count)


@router.post("/cleanup-expired", response_model=CountResponse)
async def cleanup_expired_endpoint(reclaimer: ExpiryReclaimer = Depends(get_reclaimer)):
    """Run an expiry sweep now instead of waiting for the next tick."""
    count = await reclaimer.sweep_once()
    if count is None:
        raise StorageUnavailable("bulk_reclaim")
    return CountResponse(message="Expired reservations cleaned up", count=count)


@router.post("/{seat_number}/reserve", response_model=SeatActionResponse)
async def reserve_endpoint(
    seat_number: str,
    body: ReserveRequest,
    requester: Requester = Depends(get_current_requester),
    registry: SeatRegistry = Depends(get_registry),
):
    """
    Hold a seat for 1-8 hours.

    409 SEAT_OCCUPIED if someone holds it (including losing a simultaneous
    reserve), 409 ALREADY_HAS_RESERVATION with `current_seat` if the caller
    already holds another seat.
    """
    seat = await reserve_seat(
        registry,
        seat_number,
        requester.user_id,
        body.hours,
        is_admin=requester.is_admin,
    )
    await invalidate_seat_cache()
    return SeatActionResponse(message="Seat reserved successfully", seat=SeatResponse.from_seat(seat))


@router.post("/{seat_number}/release", response_model=SeatActionResponse)
async def release_endpoint(
    seat_number: str,
    requester: Requester = Depends(get_current_requester),
    registry: SeatRegistry = Depends(get_registry),
):
    """Give a seat back. The holder or an admin may release it."""
    seat = await release_seat(registry, seat_number, requester.user_id, requester.is_admin)
    await invalidate_seat_cache()
    return SeatActionResponse(message="Seat released successfully", seat=SeatResponse.from_seat(seat))
