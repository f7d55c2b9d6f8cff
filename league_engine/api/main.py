"""
League Scheduling & Notification API Server

FastAPI server exposing match generation, event triggers and push endpoints,
and running the daily league reminder worker.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
import os
import uvicorn
from slowapi import _rate_limit_exceeded_handler  # type: ignore
from slowapi.errors import RateLimitExceeded  # type: ignore

from league_engine.api.routes import router, limiter as routes_limiter
from league_engine.database import db
from league_engine.services.reminder_service import get_reminder_scheduler
from league_engine.utils.env_utils import get_bool_env

# Set up logging
# Allow log level to be configured via environment variable (default: INFO)
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
numeric_level = getattr(logging, log_level, logging.INFO)
logging.basicConfig(
    level=numeric_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

ENABLE_REMINDER_SCHEDULER = get_bool_env("ENABLE_REMINDER_SCHEDULER", default=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup and shutdown events."""
    # Startup
    logger.info("Starting up League Scheduling API...")

    # Initialize database (create tables if they don't exist)
    try:
        await db.init_database()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)
        # Don't raise - allow app to start even if initialization fails

    # Start daily league reminder worker
    if ENABLE_REMINDER_SCHEDULER:
        try:
            get_reminder_scheduler().start()
            logger.info("✓ League reminder worker started")
        except Exception as e:
            logger.error(f"Failed to start league reminder worker: {e}", exc_info=True)
    else:
        logger.info("League reminder worker disabled (ENABLE_REMINDER_SCHEDULER=false)")

    yield  # App is running

    # Shutdown
    logger.info("Shutting down League Scheduling API...")

    try:
        get_reminder_scheduler().stop()
        logger.info("✓ League reminder worker stopped")
    except Exception as e:
        logger.error(f"Error stopping league reminder worker: {e}", exc_info=True)


app = FastAPI(
    title="League Scheduling & Notification API",
    description="Round-robin match generation and league notification triggers",
    version="1.0.0",
    lifespan=lifespan,
)

# Setup rate limiter
app.state.limiter = routes_limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add CORS middleware; origins configured via ALLOWED_ORIGINS env var
allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
