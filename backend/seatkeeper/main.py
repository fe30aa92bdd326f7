"""
Seat Reservation API - Main Application Entry Point

Study-room seat reservations for the community platform:
- Compare-and-set seat holds (no seat double-booked)
- One hold per user, 1-8 hours, reclaimed automatically on expiry
- Redis-cached seat map with write-through invalidation
- Structured logging with request correlation
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from seatkeeper.core.config import get_settings
from seatkeeper.core.exceptions import StorageUnavailable
from seatkeeper.core.logging import setup_logging, get_logger
from seatkeeper.core.metrics import metrics_endpoint
from seatkeeper.api.errors import register_exception_handlers
from seatkeeper.api.router import api_router
from seatkeeper.api.middleware import RequestLoggingMiddleware
from seatkeeper.db.session import create_tables, dispose_engine
from seatkeeper.services.cache_service import get_redis, close_redis, get_cache_stats
from seatkeeper.services.registry_factory import get_reclaimer, get_registry
from seatkeeper.services.reservation_service import seed_seats_if_empty

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        registry=settings.REGISTRY_BACKEND,
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    if settings.REGISTRY_BACKEND == "sql" and settings.CREATE_TABLES_ON_STARTUP:
        await create_tables()

    registry = get_registry()
    if settings.SEED_SEATS_ON_STARTUP:
        try:
            seeded = await seed_seats_if_empty(registry)
            if seeded:
                logger.info("seat_pool_seeded", count=seeded)
        except StorageUnavailable:
            logger.warning("seat_pool_seed_skipped", reason="storage_unavailable")

    reclaimer = get_reclaimer()
    await reclaimer.start(sweep_immediately=settings.RECLAIM_ON_STARTUP)

    yield

    await reclaimer.stop()
    await close_redis()
    await dispose_engine()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Study-room seat reservations with automatic expiry",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)
app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "registry": settings.REGISTRY_BACKEND,
        "reclaimer_running": get_reclaimer().running,
        "cache": await get_cache_stats(),
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
