"""
In-process seat registry.

Without a database there is no conditional UPDATE to lean on, so every write
to a seat runs under that seat's asyncio.Lock, and bulk operations take every
affected seat's lock in seat-number order. Callers only ever receive copies,
so nothing outside this class can mutate a stored record.

Single-process only: two workers each get their own pool.
"""

import asyncio
from contextlib import AsyncExitStack
from datetime import datetime
from typing import Mapping, Optional

from seatkeeper.core.logging import get_logger
from seatkeeper.db.base import utcnow
from seatkeeper.models.seat import Room, Seat, seat_numbers
from seatkeeper.services.interfaces.registry import SeatRegistry

logger = get_logger(__name__)


def _copy(seat: Seat) -> Seat:
    return Seat(
        id=seat.id,
        seat_number=seat.seat_number,
        room=seat.room,
        position_x=seat.position_x,
        position_y=seat.position_y,
        is_available=seat.is_available,
        current_user=seat.current_user,
        reserved_until=seat.reserved_until,
        created_at=seat.created_at,
        updated_at=seat.updated_at,
    )


def _clear(seat: Seat) -> None:
    seat.is_available = True
    seat.current_user = None
    seat.reserved_until = None
    seat.updated_at = utcnow()


class InMemorySeatRegistry(SeatRegistry):

    def __init__(self):
        self._seats: dict[str, Seat] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        # Serialises whole-pool replacement against bulk sweeps
        self._pool_lock = asyncio.Lock()

    def _lock_for(self, seat_number: str) -> asyncio.Lock:
        lock = self._locks.get(seat_number)
        if lock is None:
            lock = self._locks[seat_number] = asyncio.Lock()
        return lock

    async def find_by_seat_number(self, seat_number: str) -> Optional[Seat]:
        seat = self._seats.get(seat_number)
        return _copy(seat) if seat else None

    async def find_by_holder(self, user_id: str) -> Optional[Seat]:
        for number in sorted(self._seats):
            seat = self._seats[number]
            if not seat.is_available and seat.current_user == user_id:
                return _copy(seat)
        return None

    async def count_held_by(self, user_id: str) -> int:
        return sum(
            1 for seat in self._seats.values()
            if not seat.is_available and seat.current_user == user_id
        )

    async def list_by_room(self, room: Optional[Room] = None) -> list[Seat]:
        return [
            _copy(self._seats[number])
            for number in sorted(self._seats)
            if room is None or self._seats[number].room == room.value
        ]

    async def count(self) -> int:
        return len(self._seats)

    async def apply_hold(self, seat_number: str, user_id: str, reserved_until: datetime) -> Optional[Seat]:
        async with self._lock_for(seat_number):
            seat = self._seats.get(seat_number)
            if seat is None or not seat.is_available:
                return None
            seat.is_available = False
            seat.current_user = user_id
            seat.reserved_until = reserved_until
            seat.updated_at = utcnow()
            return _copy(seat)

    async def apply_release(self, seat_number: str, expected_holder: Optional[str] = None) -> Optional[Seat]:
        async with self._lock_for(seat_number):
            seat = self._seats.get(seat_number)
            if seat is None:
                return None
            if expected_holder is not None and (seat.is_available or seat.current_user != expected_holder):
                return None
            _clear(seat)
            return _copy(seat)

    async def bulk_reclaim(self, now: datetime) -> int:
        reclaimed = 0
        async with self._pool_lock:
            for number in sorted(self._seats):
                async with self._lock_for(number):
                    seat = self._seats.get(number)
                    if seat is not None and not seat.is_available and seat.reserved_until < now:
                        _clear(seat)
                        reclaimed += 1
        return reclaimed

    async def bulk_reinitialize(self, room_specs: Mapping[Room, int]) -> int:
        now = utcnow()
        fresh: dict[str, Seat] = {}
        for room, count in room_specs.items():
            for number in seat_numbers(room, count):
                fresh[number] = Seat(
                    id=len(fresh) + 1,
                    seat_number=number,
                    room=room.value,
                    position_x=0,
                    position_y=0,
                    is_available=True,
                    current_user=None,
                    reserved_until=None,
                    created_at=now,
                    updated_at=now,
                )

        async with AsyncExitStack() as stack:
            await stack.enter_async_context(self._pool_lock)
            for number in sorted(set(self._seats) | set(fresh)):
                await stack.enter_async_context(self._lock_for(number))
            self._seats = fresh

        logger.debug("memory_registry_reinitialized", seats=len(fresh))
        return len(fresh)
