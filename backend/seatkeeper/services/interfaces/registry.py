"""
Seat registry interface.
The registry is the only code allowed to mutate seat rows.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Mapping, Optional

from seatkeeper.models.seat import Room, Seat


class SeatRegistry(ABC):
    """
    Storage of seat records with atomic single-seat and bulk updates.

    Implementations:
    - SqlSeatRegistry: conditional UPDATE statements against the database
    - InMemorySeatRegistry: per-seat asyncio locks around a dict

    Write methods never raise for business conditions. A compare-and-set
    that did not match returns None; storage failures raise
    StorageUnavailable.
    """

    @abstractmethod
    async def find_by_seat_number(self, seat_number: str) -> Optional[Seat]:
        pass

    @abstractmethod
    async def find_by_holder(self, user_id: str) -> Optional[Seat]:
        """Seat currently held by `user_id`, if any."""
        pass

    @abstractmethod
    async def count_held_by(self, user_id: str) -> int:
        pass

    @abstractmethod
    async def list_by_room(self, room: Optional[Room] = None) -> list[Seat]:
        """Seats ordered by seat number. `None` lists every room."""
        pass

    @abstractmethod
    async def count(self) -> int:
        pass

    @abstractmethod
    async def apply_hold(self, seat_number: str, user_id: str, reserved_until: datetime) -> Optional[Seat]:
        """
        Hold the seat only if it is available at the moment of the write.

        Returns:
            The held seat, or None if the seat was not available (or absent)
        """
        pass

    @abstractmethod
    async def apply_release(self, seat_number: str, expected_holder: Optional[str] = None) -> Optional[Seat]:
        """
        Return the seat to the pool.

        Args:
            seat_number: Seat to clear
            expected_holder: When given, only clear if this user still holds it

        Returns:
            The cleared seat, or None if the seat is absent or the holder differs
        """
        pass

    @abstractmethod
    async def bulk_reclaim(self, now: datetime) -> int:
        """Clear every hold with reserved_until < now. Returns the number cleared."""
        pass

    @abstractmethod
    async def bulk_reinitialize(self, room_specs: Mapping[Room, int]) -> int:
        """Replace the whole pool with fresh available seats. Returns the seat count."""
        pass
