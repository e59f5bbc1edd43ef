"""
MedTrack Backend
Main FastAPI application for medication dose scheduling and adherence tracking
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from datetime import datetime

# Configuration and database
from config import settings, tracker_constants
from database import init_db, DatabaseHealthCheck
from exceptions import TrackerError

from api import include_routers
from services.dose_service import run_scheduled_refresh
from tools.ticker import create_ticker

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format=settings.LOG_FORMAT
)
logger = logging.getLogger(__name__)


# ==================== LIFESPAN ====================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown"""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Environment: {settings.ENV}")

    # Initialize database
    try:
        init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    # Start the dose scheduler
    app.state.ticker = None
    if settings.SCHEDULER_ENABLED:
        ticker = create_ticker(
            settings.SCHEDULER_MODE,
            run_scheduled_refresh,
            interval_minutes=tracker_constants.SWEEP_INTERVAL_MINUTES
        )
        ticker.start()
        app.state.ticker = ticker
    else:
        logger.info("Dose scheduler disabled by configuration")

    yield

    # Shutdown
    if app.state.ticker is not None:
        app.state.ticker.stop()
    logger.info(f"Shutting down {settings.APP_NAME}")


# ==================== APP INITIALIZATION ====================

app = FastAPI(
    title=settings.APP_NAME,
    description="""
    ## MedTrack API

    Recurring medication scheduling and adherence tracking.

    ### Features
    - **Dose Materialization**: Expands daily schedules into dose instances over a date range
    - **Overdue Sweeps**: Marks doses missed once their grace period has passed
    - **Adherence Reports**: Adherence rate, on-time rate, risk level and recommendations
    """,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Attach modular API routers (prefix /api/v1)
include_routers(app, prefix=settings.API_PREFIX)


# ==================== EXCEPTION HANDLERS ====================

def _error_response(status_code: int, message) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": True,
            "message": message,
            "status_code": status_code,
            "timestamp": datetime.utcnow().isoformat()
        }
    )


@app.exception_handler(TrackerError)
async def tracker_exception_handler(request: Request, exc: TrackerError):
    if exc.status_code >= 500:
        logger.error(f"Tracker storage error: {exc}", exc_info=True)
    else:
        logger.info(f"{exc.__class__.__name__}: {exc.message}")
    return _error_response(exc.status_code, exc.message)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return _error_response(exc.status_code, exc.detail)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unexpected error: {exc}", exc_info=True)
    return _error_response(
        500,
        "An unexpected error occurred" if not settings.DEBUG else str(exc)
    )


# ==================== HEALTH ENDPOINTS ====================

@app.get("/", tags=["Health"])
async def root():
    """Root endpoint - basic health check"""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat()
    }


@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """Detailed health check endpoint"""
    db_connected = DatabaseHealthCheck.is_connected()
    ticker = getattr(request.app.state, "ticker", None)

    return {
        "status": "healthy" if db_connected else "degraded",
        "timestamp": datetime.utcnow().isoformat(),
        "checks": {
            "database": {
                "status": "up" if db_connected else "down",
                "type": "sqlite" if "sqlite" in settings.DATABASE_URL else "postgresql"
            },
            "scheduler": ticker.status() if ticker else {"mode": None, "running": False}
        },
        "config": {
            "grace_period_minutes": int(tracker_constants.GRACE_PERIOD.total_seconds() // 60),
            "sweep_interval_minutes": tracker_constants.SWEEP_INTERVAL_MINUTES,
            "analysis_window_days": tracker_constants.ANALYSIS_WINDOW_DAYS
        },
        "version": settings.APP_VERSION,
        "environment": settings.ENV
    }


# ==================== MAIN ====================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
