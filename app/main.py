from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from slowapi.errors import RateLimitExceeded

from app.core.limits import limiter, rate_limit_handler
from app.core.init_db import init_database
from app.core.error_handlers import setup_exception_handlers
from app.core.database import db_manager
from app.core.middleware import setup_middleware
from app.core.logging_utils import (
    setup_logging,
    get_logger,
    log_business_event,
    error_tracker,
)
from app.core.config import (
    validate_config,
    APP_NAME,
    APP_VERSION,
    CORS_ORIGINS,
    DEBUG,
    ENVIRONMENT,
    LOG_LEVEL,
    LOG_FORMAT,
)

from app.staff.routers import users as staff_users
from app.staff.routers import teams as staff_teams
from app.staff.routers import roster as staff_roster
from app.staff.routers import events as staff_events
from app.staff.routers import stats as staff_stats
from app.staff.routers import dashboard as staff_dashboard
from app.players.routers import attendance as player_attendance
from app.players.routers import player as player_self

setup_logging(LOG_LEVEL, LOG_FORMAT)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Управление жизненным циклом приложения"""

    logger.info(f"Starting {APP_NAME} v{APP_VERSION}")

    try:
        validate_config()
        logger.info("✅ Configuration validated")

        await init_database()
        logger.info("✅ Database initialized")

        log_business_event(
            "application_started",
            "system",
            0,
            {"version": APP_VERSION, "environment": ENVIRONMENT},
        )

        logger.info("🚀 Application startup completed")

    except Exception as e:
        logger.error(f"❌ Application startup failed: {str(e)}")
        error_tracker.track_error(
            "STARTUP_ERROR",
            str(e),
            {"component": "application_startup", "version": APP_VERSION},
        )
        raise

    yield

    logger.info("🛑 Shutting down application...")

    try:
        await db_manager.close_connections()
        logger.info("✅ Database connections closed")

    except Exception as e:
        logger.error(f"❌ Error during shutdown: {str(e)}")

    logger.info("👋 Application shutdown completed")


app = FastAPI(
    title=APP_NAME,
    description="Basketball club management: teams, rosters, events, statistics",
    version=APP_VERSION,
    lifespan=lifespan,
    debug=DEBUG,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)

setup_middleware(
    app,
    {
        "slow_request_threshold": 5.0,
        "exclude_paths": [
            "/health",
            "/docs",
            "/openapi.json",
            "/redoc",
            "/favicon.ico",
        ],
    },
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_handler)

app.include_router(staff_users.router, prefix="/api/v1")
app.include_router(staff_teams.router, prefix="/api/v1")
app.include_router(staff_roster.router, prefix="/api/v1")
app.include_router(staff_events.router, prefix="/api/v1")
app.include_router(staff_stats.router, prefix="/api/v1")
app.include_router(staff_dashboard.router, prefix="/api/v1")
app.include_router(player_attendance.router, prefix="/api/v1")
app.include_router(player_self.router, prefix="/api/v1")


@app.get("/health", tags=["Health"])
async def health_check():
    """Состояние сервиса и базы данных"""
    try:
        await db_manager.check_connection()
        database = "ok"
    except Exception as e:
        logger.warning(f"Health check: database unavailable: {e}")
        database = "unavailable"

    return {
        "status": "ok" if database == "ok" else "degraded",
        "version": APP_VERSION,
        "database": database,
        "errors": error_tracker.get_stats()["total_errors"],
    }
