"""
Battalion personnel portal API: reservist records, staff workflows and administration.
"""
import shutil
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text

import config
from database.connection import Database
from storage.s3_client import S3Client
from core.logger import logger
from middleware.security import (
    RateLimitMiddleware, SecurityHeadersMiddleware,
    setup_cors, setup_trusted_hosts
)
from middleware.auth_middleware import RoleRouteMiddleware
from middleware.error_handlers import register_error_handlers
from routers.auth import router as auth_router
from routers.notifications import router as notifications_router
from routers.staff_portal import router as staff_portal_router
from routers.staff_reservists import router as staff_reservists_router
from routers.staff_documents import router as staff_documents_router
from routers.staff_rids import router as staff_rids_router
from routers.staff_training import router as staff_training_router
from routers.admin import router as admin_router
from routers.administrators import router as administrators_router
from routers.companies import router as companies_router
from routers.audit_logs import router as audit_logs_router
from routers.reservist import router as reservist_router


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan events for FastAPI app.
    Initialize database and S3 on startup, release connections on shutdown.
    """
    logger.info("=" * 60)
    logger.info(f"Starting {config.APP_NAME} v{config.APP_VERSION}...")
    logger.info("=" * 60)

    # Tests install their own Database before the app starts
    if config.db is None:
        try:
            config.db = Database(
                database_url=config.DATABASE_URL,
                pool_size=config.DB_POOL_SIZE,
                max_overflow=config.DB_MAX_OVERFLOW
            )
            config.db.create_tables()
            logger.info("Database initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}", exc_info=True)
            raise

    if config.USE_S3:
        try:
            config.s3_client = S3Client(
                bucket_name=config.S3_BUCKET_NAME,
                aws_access_key_id=config.S3_ACCESS_KEY_ID,
                aws_secret_access_key=config.S3_SECRET_ACCESS_KEY,
                region_name=config.S3_REGION,
                endpoint_url=config.S3_ENDPOINT_URL,
            )
        except Exception as e:
            logger.error(f"Failed to initialize S3 client: {e}", exc_info=True)
            logger.warning("Continuing without S3 - files will be stored locally")
            config.s3_client = None
    else:
        logger.info("S3 storage disabled - using local storage")
        config.s3_client = None

    logger.info(f"Environment: {config.ENVIRONMENT}")
    logger.info("API Docs: http://localhost:8000/docs")
    logger.info("=" * 60)

    yield

    # Cleanup on shutdown
    logger.info("Shutting down...")
    if config.db:
        config.db.engine.dispose()
        logger.info("Database connections closed")


# Initialize FastAPI app
app = FastAPI(
    title=config.APP_NAME,
    description="Battalion personnel portal: reservist records, RIDS, documents, training and administration",
    version=config.APP_VERSION,
    lifespan=lifespan
)

register_error_handlers(app)

# Setup security middleware
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    RateLimitMiddleware,
    requests_per_minute=config.RATE_LIMIT_PER_MINUTE,
    requests_per_hour=config.RATE_LIMIT_PER_HOUR
)
app.add_middleware(RoleRouteMiddleware)
setup_cors(app, config.CORS_ORIGINS)
if config.ENVIRONMENT == "production":
    setup_trusted_hosts(app, config.TRUSTED_HOSTS)

# Include routers
app.include_router(auth_router)
app.include_router(notifications_router)
app.include_router(staff_portal_router)
app.include_router(staff_reservists_router)
app.include_router(staff_documents_router)
app.include_router(staff_rids_router)
app.include_router(staff_training_router)
app.include_router(admin_router)
app.include_router(administrators_router)
app.include_router(companies_router)
app.include_router(audit_logs_router)
app.include_router(reservist_router)

# Locally stored uploads are served from /uploads/<key> when S3 is off
app.mount("/uploads", StaticFiles(directory=str(config.UPLOADS_DIR), check_dir=False), name="uploads")


@app.get("/")
async def root():
    """Root endpoint with API information. Public endpoint."""
    return {
        "message": config.APP_NAME,
        "version": config.APP_VERSION,
        "environment": config.ENVIRONMENT,
        "endpoints": {
            "auth": "/api/auth",
            "reservist": "/api/reservist",
            "staff": "/api/staff",
            "admin": "/api/admin",
            "super_admin": "/api/super-admin",
        },
        "docs": "/docs",
        "s3_enabled": config.USE_S3 and config.s3_client is not None
    }


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring. Public endpoint."""
    health_status = {
        "status": "healthy",
        "timestamp": time.time(),
        "checks": {}
    }

    try:
        if config.db is None:
            health_status["checks"]["database"] = {"status": "error", "error": "not initialized"}
            health_status["status"] = "degraded"
        else:
            with config.db.get_session() as db:
                db.execute(text("SELECT 1"))
            health_status["checks"]["database"] = {"status": "ok"}
    except Exception as e:
        logger.warning(f"Health check: database unavailable: {e}")
        health_status["checks"]["database"] = {"status": "error", "error": str(e)}
        health_status["status"] = "degraded"

    if config.s3_client:
        try:
            config.s3_client.s3_client.head_bucket(Bucket=config.s3_client.bucket_name)
            health_status["checks"]["s3"] = {"status": "ok", "enabled": True, "bucket": config.s3_client.bucket_name}
        except Exception as e:
            logger.warning(f"Health check: S3 unavailable: {e}")
            health_status["checks"]["s3"] = {"status": "error", "enabled": True, "error": str(e)}
            health_status["status"] = "degraded"
    else:
        health_status["checks"]["s3"] = {"status": "disabled", "enabled": False}

    try:
        disk_usage = shutil.disk_usage(config.UPLOADS_DIR)
        free_gb = disk_usage.free / (1024 ** 3)
        health_status["checks"]["disk"] = {
            "free_gb": round(free_gb, 2),
            "percent_free": round((disk_usage.free / disk_usage.total) * 100, 2)
        }
        if free_gb < 1:
            health_status["status"] = "degraded"
    except OSError as e:
        health_status["checks"]["disk"] = {"error": str(e)}

    return health_status


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
