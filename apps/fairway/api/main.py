"""
Fairway Settlement API Server

FastAPI server exposing operator endpoints for tournament settlement and,
optionally, running the periodic settlement worker.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
import logging
import os
import uvicorn

from fairway.api.routes import router
from fairway.database import db
from fairway.database.repositories import SettlementGateway
from fairway.services.settings_service import configure_logging, load_settings
from fairway.services.settlement_scheduler import SettlementScheduler
from fairway.services.settlement_service import SettlementService

# Set up logging
# Allow log level to be configured via environment variable (default: INFO)
log_level = configure_logging()
logger = logging.getLogger(__name__)


def build_scheduler() -> SettlementScheduler:
    """Create the periodic settlement worker bound to the application database."""
    settings = load_settings()

    def service_factory() -> SettlementService:
        gateway = SettlementGateway.from_session_factory(db.AsyncSessionLocal)
        return SettlementService(gateway, settings)

    return SettlementScheduler(service_factory, settings.poll_interval_seconds)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup and shutdown events."""
    # Startup
    logger.info(f"Starting up Fairway Settlement API (log level {log_level})...")
    settings = load_settings()

    # Initialize database (create tables if they don't exist)
    # Fallback for environments where migrations have not been run
    try:
        await db.init_database()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)

    scheduler = None
    if settings.scheduler_enabled:
        try:
            scheduler = build_scheduler()
            scheduler.start()
            logger.info("✓ Settlement worker started")
        except Exception as e:
            logger.error(f"Failed to start settlement worker: {e}", exc_info=True)
    app.state.scheduler = scheduler

    yield  # App is running

    # Shutdown
    logger.info("Shutting down Fairway Settlement API...")
    if scheduler is not None:
        # The worker must not be mid-sweep when the engine is disposed
        await scheduler.shutdown()
    await db.engine.dispose()


app = FastAPI(
    title="Fairway Settlement API",
    description="Operator API for fantasy golf tournament settlement",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(router)


if __name__ == "__main__":
    uvicorn.run(
        "fairway.api.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=False,
    )
