"""Main FastAPI application."""

import logging
import re
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session

from . import __version__
from .api import (
    admin_users_router,
    auth_router,
    documents_router,
    logs_router,
    notes_router,
    profile_router,
    sessions_router,
    users_router,
)
from .core.config import settings, ConfigurationError, Environment
from .core.logging_config import setup_logging
from .database import engine, get_db, init_db, SessionLocal, DATABASE_URL
from .exceptions import PortalException
from .middleware.exception_handler import portal_exception_handler
from .middleware.request_context import RequestContextMiddleware
from .services import login_log_service
from .services.keycloak_client import close_keycloak
from .services.object_storage import get_storage

# Setup logging first
setup_logging(log_level=settings.log_level, log_format=settings.log_format)
logger = logging.getLogger(__name__)


def _mask_url(url: str) -> str:
    """Mask password in database URL for safe logging."""
    return re.sub(r'://([^:]+):([^@]+)@', r'://\1:***@', url)


def _validate_database_connection() -> None:
    """Test that the database is reachable. Exits with clear message on failure."""
    masked = _mask_url(DATABASE_URL)
    logger.info(f"Connecting to database: {masked}")

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("Database connection verified")
    except Exception as e:
        error_str = str(e)
        if DATABASE_URL.startswith("sqlite"):
            hint = "Check that the directory exists and is writable."
        elif "authentication failed" in error_str or "password" in error_str.lower():
            hint = "Check username and password in DATABASE_URL."
        elif "does not exist" in error_str:
            hint = "Create the database first: createdb <database_name>"
        else:
            hint = "Verify the database server is running and DATABASE_URL is correct."
        logger.critical(
            "Database connection failed.\n"
            f"  DATABASE_URL: {masked}\n"
            f"  {hint}\n"
            f"  Error: {error_str}"
        )
        raise SystemExit(1)


_validate_database_connection()
init_db()


def _warn_insecure_development_settings() -> None:
    if not settings.auth_enabled:
        logger.warning(
            "SECURITY: Authentication is disabled (AUTH_ENABLED=false). "
            "Every request runs as a development admin."
        )
    if not settings.keycloak_admin_client_secret:
        logger.warning(
            "KEYCLOAK_ADMIN_CLIENT_SECRET is empty. Profile, session and user "
            "management calls will fail against a real Keycloak."
        )
    if settings.minio_access_key == "minioadmin":
        logger.warning("MinIO is using the default minioadmin credentials.")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle for the portal API."""
    logger.info(f"Environment: {settings.environment.value}")
    try:
        settings.validate_production_config()
    except ConfigurationError as e:
        logger.critical(f"STARTUP BLOCKED: {e}")
        raise SystemExit(1) from e

    if settings.environment == Environment.DEVELOPMENT:
        _warn_insecure_development_settings()

    # --- Object storage bucket ---
    storage_factory = app.dependency_overrides.get(get_storage, get_storage)
    try:
        storage_factory().ensure_bucket()
    except Exception as e:
        logger.warning(f"Bucket setup failed (non-fatal): {e}")

    # --- Purge old login logs ---
    if settings.login_log_retention_days > 0:
        db = SessionLocal()
        try:
            purged = login_log_service.purge_older_than(db, settings.login_log_retention_days)
            if purged > 0:
                logger.info(
                    f"Purged {purged} login log entries older than {settings.login_log_retention_days} days"
                )
        finally:
            db.close()

    yield  # App runs here

    close_keycloak()


app = FastAPI(
    title="PEMDA DIY Dashboard API",
    description=(
        "Backend for the PEMDA DIY government portal dashboard: personal notes, "
        "a document store with folders, login history, Keycloak session management "
        "and admin user management.\n\n"
        "**Authentication:** every `/api` endpoint except login, refresh and logout "
        "requires a Keycloak access token in the `Authorization: Bearer` header."
    ),
    version=__version__,
    lifespan=lifespan,
)

# Middleware stack (outermost first: CORS wraps request context).
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
)
app.add_middleware(RequestContextMiddleware)

app.add_exception_handler(PortalException, portal_exception_handler)

logger.info(
    "PEMDA dashboard API started | env=%s | db=%s | auth=%s | realm=%s",
    settings.environment.value,
    "PostgreSQL" if DATABASE_URL.startswith("postgresql") else "SQLite",
    "enabled" if settings.auth_enabled else "disabled",
    settings.keycloak_realm,
)

app.include_router(auth_router)
app.include_router(documents_router)
app.include_router(notes_router)
app.include_router(logs_router)
app.include_router(sessions_router)
app.include_router(profile_router)
app.include_router(admin_users_router)
app.include_router(users_router)


@app.get("/")
def root():
    """Root endpoint."""
    return {
        "name": "PEMDA DIY Dashboard API",
        "version": __version__,
        "status": "running"
    }


_startup_time = time.monotonic()


@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    """Health check returning database status and uptime.

    Never raises: a database failure is reported as ``degraded`` so load
    balancers can still probe without receiving 5xx.
    """
    db_status = "ok"
    try:
        db.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Health check database probe failed")
        db_status = "error"

    return {
        "status": "healthy" if db_status == "ok" else "degraded",
        "database": db_status,
        "uptime_seconds": round(time.monotonic() - _startup_time),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
