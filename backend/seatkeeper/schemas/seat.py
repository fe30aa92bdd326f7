"""
Pydantic schemas for seat request/response validation.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from seatkeeper.models.seat import Room


class RoomFilter(str, Enum):
    ALL = "all"
    WHITE = "white"
    STAFF = "staff"

    def to_room(self) -> Optional[Room]:
        return None if self is RoomFilter.ALL else Room(self.value)


class Position(BaseModel):
    x: int
    y: int


class SeatResponse(BaseModel):
    seat_number: str
    room: Room
    position: Position
    is_available: bool
    current_user: Optional[str] = None
    reserved_until: Optional[datetime] = None

    @classmethod
    def from_seat(cls, seat) -> "SeatResponse":
        return cls(
            seat_number=seat.seat_number,
            room=seat.room,
            position=Position(x=seat.position_x, y=seat.position_y),
            is_available=seat.is_available,
            current_user=seat.current_user,
            reserved_until=seat.reserved_until,
        )


class SeatListResponse(BaseModel):
    seats: list[SeatResponse]
    cached: bool = False


class ReserveRequest(BaseModel):
    # Range is checked by the engine so out-of-range values map to INVALID_HOURS
    hours: int = Field(..., strict=True)


class SeatActionResponse(BaseModel):
    message: str
    seat: SeatResponse


class MyReservationResponse(BaseModel):
    seat: Optional[SeatResponse] = None


class CountResponse(BaseModel):
    message: str
    count: int
