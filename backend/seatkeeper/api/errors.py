"""
Maps reservation errors onto JSON responses.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from seatkeeper.core.exceptions import ReservationError
from seatkeeper.core.logging import get_logger

logger = get_logger(__name__)


async def reservation_error_handler(request: Request, exc: ReservationError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("reservation_error", code=exc.code, details=exc.details)
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "code": exc.code,
                "message": exc.message,
                "details": exc.details,
            }
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ReservationError, reservation_error_handler)
