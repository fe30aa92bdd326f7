"""
Service interfaces for dependency inversion.
Allows swapping storage implementations without changing business logic.
"""

from .registry import SeatRegistry

__all__ = ['SeatRegistry']
