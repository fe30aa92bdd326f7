"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from seatkeeper.api.routes import seats
from seatkeeper.core.config import get_settings

api_router = APIRouter(prefix=get_settings().API_PREFIX)
api_router.include_router(seats.router)
