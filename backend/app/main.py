from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException
from datetime import datetime, timezone
import logging
import os

from .config import settings
from .logging_config import setup_logging
from .database import engine, Base, get_db
from .exceptions import APIError
from .limiter import limiter
from .dependencies import get_store, get_telemetry
from .services.session_cleanup import SessionCleanupService

# Import all models (required for SQLAlchemy to create tables)
from .models import Villager, Sensor

# Import routes
from .routes import auth, verify, admin, villagers, sensors, debug

setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Villager registration, sensor monitoring and mobile login for Smart Panchayat",
    version=settings.APP_VERSION,
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url="/api/redoc" if settings.DEBUG else None
)

# Rate limiter for the OTP endpoints
app.state.limiter = limiter

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.origins_list,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept"],
    max_age=3600,
)

# Security headers and access log
from .middleware.security import SecurityHeadersMiddleware, RequestLoggingMiddleware
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)


# ========== ERROR ENVELOPE ==========

def _error(status_code: int, message: str, code: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message, "code": code, **extra}
    )

@app.exception_handler(APIError)
async def api_error_handler(request: Request, exc: APIError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        message = str(errors[0].get("msg", message))
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
    return _error(status.HTTP_400_BAD_REQUEST, message, "validation_error")

@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == status.HTTP_404_NOT_FOUND and request.url.path.startswith("/api"):
        return _error(exc.status_code, f"API endpoint not found: {request.method} {request.url.path}", "not_found")
    return _error(exc.status_code, str(exc.detail), "http_error")

@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return _error(status.HTTP_429_TOO_MANY_REQUESTS, f"Rate limit exceeded: {exc.detail}", "rate_limited")

@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}")
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Database error", "database_error")

@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", "internal_error")


# Include routers
app.include_router(auth.router, prefix="/api")
app.include_router(verify.router, prefix="/api")  # Mobile OTP login
app.include_router(admin.router, prefix="/api")
app.include_router(villagers.router, prefix="/api")
app.include_router(sensors.router, prefix="/api")
if settings.DEBUG:
    app.include_router(debug.router, prefix="/api")

session_cleanup = SessionCleanupService(get_store(), settings.SESSION_SWEEP_INTERVAL)

@app.on_event("startup")
async def startup_event():
    """Initialize database and create tables"""
    Base.metadata.create_all(bind=engine)
    await session_cleanup.start()
    logger.info(f"{settings.APP_NAME} Started Successfully")
    logger.info(f"Environment: {settings.APP_ENV}")
    logger.info(f"Sessions: {settings.TOKEN_STRATEGY} tokens, {settings.SESSION_BACKEND} store")
    logger.info(f"Sensor live threshold: {settings.SENSOR_LIVE_THRESHOLD_SECONDS}s")

@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown"""
    await session_cleanup.stop()
    get_telemetry().close()
    logger.info(f"{settings.APP_NAME} Shutting Down...")

@app.get("/api/health")
async def health_check(db: Session = Depends(get_db)):
    db.execute(text("SELECT 1"))
    return {
        "success": True,
        "message": f"{settings.APP_NAME} is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.APP_VERSION,
        "environment": settings.APP_ENV,
        "database": "connected"
    }

# Admin web UI (static build), served last so /api routes win
if os.path.isdir(settings.PUBLIC_DIR):
    app.mount("/", StaticFiles(directory=settings.PUBLIC_DIR, html=True), name="public")
