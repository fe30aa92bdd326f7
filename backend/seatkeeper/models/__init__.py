from seatkeeper.models.seat import Room, Seat, seat_numbers

__all__ = ["Room", "Seat", "seat_numbers"]
