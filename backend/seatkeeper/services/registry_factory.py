"""
Registry factory.
Configures which seat registry implementation the application uses.
"""

from typing import Optional

from seatkeeper.core.config import get_settings
from seatkeeper.services.cache_service import invalidate_seat_cache
from seatkeeper.services.interfaces.registry import SeatRegistry
from seatkeeper.services.reclaimer import ExpiryReclaimer


def build_registry() -> SeatRegistry:
    """
    Build the configured registry.

    Selection via REGISTRY_BACKEND:
    - "sql" (default): database-backed, safe across processes
    - "memory": single-process pool for demos and local development
    """
    backend = get_settings().REGISTRY_BACKEND

    if backend == "memory":
        from seatkeeper.services.memory_registry import InMemorySeatRegistry
        return InMemorySeatRegistry()
    if backend == "sql":
        from seatkeeper.db.session import get_session_factory
        from seatkeeper.services.sql_registry import SqlSeatRegistry
        return SqlSeatRegistry(get_session_factory())
    raise ValueError(f"Unknown REGISTRY_BACKEND: {backend!r}")


async def _invalidate_after_reclaim(count: int) -> None:
    await invalidate_seat_cache()


def build_reclaimer(registry: SeatRegistry) -> ExpiryReclaimer:
    return ExpiryReclaimer(
        registry,
        interval_seconds=get_settings().RECLAIM_INTERVAL_SECONDS,
        on_reclaimed=_invalidate_after_reclaim,
    )


# Singleton instances
_registry: Optional[SeatRegistry] = None
_reclaimer: Optional[ExpiryReclaimer] = None


def get_registry() -> SeatRegistry:
    """Get registry singleton. Used as a FastAPI dependency."""
    global _registry
    if _registry is None:
        _registry = build_registry()
    return _registry


def get_reclaimer() -> ExpiryReclaimer:
    """Get reclaimer singleton bound to the registry singleton."""
    global _reclaimer
    if _reclaimer is None:
        _reclaimer = build_reclaimer(get_registry())
    return _reclaimer


def reset_singletons() -> None:
    global _registry, _reclaimer
    _registry = None
    _reclaimer = None
