from seatkeeper.schemas.seat import (
    CountResponse,
    MyReservationResponse,
    ReserveRequest,
    RoomFilter,
    SeatActionResponse,
    SeatListResponse,
    SeatResponse,
)

__all__ = [
    "CountResponse", "MyReservationResponse", "ReserveRequest", "RoomFilter",
    "SeatActionResponse", "SeatListResponse", "SeatResponse",
]
