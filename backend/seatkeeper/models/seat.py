"""
Seat model: one row per physical seat.

Key design decisions:
- `seat_number` is the external key and carries a unique index
- `is_available` is the single source of truth for occupancy; the CHECK
  constraint keeps `current_user`/`reserved_until` set exactly while held
- `current_user` is stored as `holder_id` (CURRENT_USER is an SQL keyword)
  and indexed because every reservation looks up the requester's hold
- No version column: every write is a single conditional UPDATE, so the
  WHERE clause itself is the compare-and-set
"""

import enum

from sqlalchemy import Boolean, CheckConstraint, Column, Index, Integer, String, text

from seatkeeper.db.base import Base, TimestampMixin, UTCDateTime


class Room(str, enum.Enum):
    WHITE = "white"
    STAFF = "staff"

    @property
    def prefix(self) -> str:
        return self.value[0].upper()


class Seat(Base, TimestampMixin):
    __tablename__ = "seats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    seat_number = Column(String(16), nullable=False, unique=True, index=True)
    room = Column(String(16), nullable=False, index=True)
    position_x = Column(Integer, nullable=False, default=0)
    position_y = Column(Integer, nullable=False, default=0)
    is_available = Column(Boolean, nullable=False, default=True)
    current_user = Column("holder_id", String(64), nullable=True, index=True)
    reserved_until = Column(UTCDateTime(), nullable=True)

    __table_args__ = (
        CheckConstraint("room IN ('white', 'staff')", name="check_seat_room"),
        CheckConstraint(
            "(is_available AND holder_id IS NULL AND reserved_until IS NULL) OR "
            "(NOT is_available AND holder_id IS NOT NULL AND reserved_until IS NOT NULL)",
            name="check_seat_hold_consistent",
        ),
        # Expiry sweep scans held seats by deadline
        Index("ix_seats_held_reserved_until", "reserved_until", postgresql_where=text("NOT is_available")),
    )

    def __repr__(self) -> str:
        return f"<Seat({self.seat_number}, room={self.room}, available={self.is_available}, holder={self.current_user})>"


def seat_numbers(room: Room, count: int) -> list[str]:
    """Sequential zero-padded numbers for a room: W01, W02, ..."""
    width = max(2, len(str(count)))
    return [f"{room.prefix}{i:0{width}d}" for i in range(1, count + 1)]
