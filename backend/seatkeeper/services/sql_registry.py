"""
Database-backed seat registry.

CONCURRENCY STRATEGY: conditional single-statement updates
===========================================================

Problem:
  Two users press "reserve" on the same seat at the same moment.
  Both read is_available=true, both write their hold, the later write wins
  and the first user walks to a seat someone else owns.

Solution:
  The availability check lives inside the write itself:

    UPDATE seats SET is_available = false, holder_id = :user, reserved_until = :until
    WHERE seat_number = :seat AND is_available = true

  The database applies row-level write locking to the UPDATE, so exactly one
  of the racing statements matches; the other sees rowcount == 0 and the
  caller reports "seat occupied". Releases and the expiry sweep use the same
  shape (predicate in the WHERE clause), so they are safe to run redundantly
  from several processes.

  Each public method is one short transaction. No lock is held across
  requests and a cancelled call can never leave a half-written row.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Mapping, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from seatkeeper.core.exceptions import StorageUnavailable
from seatkeeper.core.logging import get_logger
from seatkeeper.models.seat import Room, Seat, seat_numbers
from seatkeeper.services.interfaces.registry import SeatRegistry

logger = get_logger(__name__)

_CLEARED_HOLD = {
    Seat.is_available: True,
    Seat.current_user: None,
    Seat.reserved_until: None,
}


class SqlSeatRegistry(SeatRegistry):

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except (SQLAlchemyError, OSError) as e:
            logger.error("seat_storage_error", operation=operation, error=str(e))
            raise StorageUnavailable(operation, e) from e

    @staticmethod
    async def _get(session: AsyncSession, seat_number: str) -> Optional[Seat]:
        result = await session.execute(select(Seat).where(Seat.seat_number == seat_number))
        return result.scalar_one_or_none()

    async def find_by_seat_number(self, seat_number: str) -> Optional[Seat]:
        async with self._transaction("find_by_seat_number") as session:
            return await self._get(session, seat_number)

    async def find_by_holder(self, user_id: str) -> Optional[Seat]:
        async with self._transaction("find_by_holder") as session:
            result = await session.execute(
                select(Seat)
                .where(Seat.current_user == user_id, Seat.is_available.is_(False))
                .order_by(Seat.seat_number.asc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def count_held_by(self, user_id: str) -> int:
        async with self._transaction("count_held_by") as session:
            result = await session.execute(
                select(func.count())
                .select_from(Seat)
                .where(Seat.current_user == user_id, Seat.is_available.is_(False))
            )
            return result.scalar_one()

    async def list_by_room(self, room: Optional[Room] = None) -> list[Seat]:
        query = select(Seat).order_by(Seat.seat_number.asc())
        if room is not None:
            query = query.where(Seat.room == room.value)
        async with self._transaction("list_by_room") as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def count(self) -> int:
        async with self._transaction("count") as session:
            result = await session.execute(select(func.count()).select_from(Seat))
            return result.scalar_one()

    async def apply_hold(self, seat_number: str, user_id: str, reserved_until: datetime) -> Optional[Seat]:
        async with self._transaction("apply_hold") as session:
            result = await session.execute(
                update(Seat)
                .where(Seat.seat_number == seat_number, Seat.is_available.is_(True))
                .values({
                    Seat.is_available: False,
                    Seat.current_user: user_id,
                    Seat.reserved_until: reserved_until,
                })
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                return None
            return await self._get(session, seat_number)

    async def apply_release(self, seat_number: str, expected_holder: Optional[str] = None) -> Optional[Seat]:
        conditions = [Seat.seat_number == seat_number]
        if expected_holder is not None:
            conditions += [Seat.current_user == expected_holder, Seat.is_available.is_(False)]

        async with self._transaction("apply_release") as session:
            result = await session.execute(
                update(Seat)
                .where(*conditions)
                .values(_CLEARED_HOLD)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                return None
            return await self._get(session, seat_number)

    async def bulk_reclaim(self, now: datetime) -> int:
        async with self._transaction("bulk_reclaim") as session:
            result = await session.execute(
                update(Seat)
                .where(Seat.is_available.is_(False), Seat.reserved_until < now)
                .values(_CLEARED_HOLD)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

    async def bulk_reinitialize(self, room_specs: Mapping[Room, int]) -> int:
        seats = [
            Seat(
                seat_number=number,
                room=room.value,
                position_x=0,
                position_y=0,
                is_available=True,
            )
            for room, count in room_specs.items()
            for number in seat_numbers(room, count)
        ]
        async with self._transaction("bulk_reinitialize") as session:
            await session.execute(delete(Seat).execution_options(synchronize_session=False))
            session.add_all(seats)
        return len(seats)
