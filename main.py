"""Ivory client portal - account, file and audit API for the Ivory website."""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from portal.config import Settings, get_settings
from portal.database import SessionLocal
from portal.errors import PortalError
from portal.migrations import run_migrations
from portal.rate_limit import limiter
from portal.routers import admin_router, auth_router, files_router
from portal.services.accounts import AccountManager
from portal.services.mailer import get_mailer
from portal.services.sessions import SessionStore

# Logging
logger = logging.getLogger("ivory_portal")
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

APP_VERSION = "0.1.0"
SITE_DIR = Path(__file__).resolve().parent / "site"


def prepare_store(settings: Settings, session_factory: sessionmaker = SessionLocal) -> None:
    """Migrate (when enabled), seed an empty account table and drop expired sessions."""
    if settings.RUN_MIGRATIONS_ON_STARTUP:
        run_migrations(settings.DATABASE_URL)
    if not settings.SEED_DEFAULT_ACCOUNTS:
        return

    db = session_factory()
    try:
        AccountManager(db, get_mailer(), settings=settings).seed_default_accounts()
        removed = SessionStore(db).purge_expired()
        db.commit()
        if removed:
            logger.info("Purged %d expired sessions", removed)
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Prepare the store before serving."""
    settings = get_settings()
    for warning in settings.validate():
        logger.warning(warning)

    prepare_store(settings)
    yield


app = FastAPI(title="Ivory Client Portal", version=APP_VERSION, lifespan=lifespan)
app.state.limiter = limiter


# --- Security headers middleware ---
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; img-src 'self' data:; style-src 'self' 'unsafe-inline'; connect-src 'self'"
        )
        return response


# --- Request size limit middleware ---
class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        max_body_size = (get_settings().MAX_UPLOAD_SIZE_MB + 1) * 1024 * 1024
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > max_body_size:
            return JSONResponse(status_code=413, content={"detail": "Request body too large", "error": "too_large"})
        return await call_next(request)


# --- Access logging middleware ---
class AccessLogMiddleware(BaseHTTPMiddleware):
    SENSITIVE_PREFIXES = ("/api/v1/auth/", "/api/v1/admin/", "/api/v1/files/")

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.time()
        response = await call_next(request)
        duration_ms = (time.time() - start) * 1000

        # Log state-changing calls on sensitive paths
        path = request.url.path
        method = request.method
        if method in ("POST", "DELETE") and path.startswith(self.SENSITIVE_PREFIXES):
            logger.info(
                "ACCESS %s %s -> %d (%.0fms) from %s",
                method,
                path,
                response.status_code,
                duration_ms,
                request.client.host if request.client else "unknown",
            )

        return response


app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestSizeLimitMiddleware)
app.add_middleware(AccessLogMiddleware)

# API routers
app.include_router(auth_router)
app.include_router(admin_router)
app.include_router(files_router)


# --- Error handlers ---
@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
    """Map domain errors to a short message plus a machine-checkable kind."""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "error": exc.kind})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed body, query or path. The offending input is not echoed back."""
    logger.info("Rejected malformed request to %s %s: %d errors", request.method, request.url.path, len(exc.errors()))
    return JSONResponse(status_code=400, content={"detail": "Invalid request", "error": "validation_error"})


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Storage failures outside the account manager. No driver detail is returned."""
    logger.exception("Unhandled store error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error", "error": "store_error"})


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Handle slowapi rate limit exceeded."""
    return JSONResponse(
        status_code=429,
        content={"detail": "Rate limit exceeded. Try again later.", "error": "rate_limit_exceeded"},
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail, "error": "http_error"})


# --- Health check ---
@app.get("/api/health")
def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok", "app": "ivory-portal", "version": APP_VERSION}


# Static marketing site (home/about/services), when present. Mounted last so
# the API routes take precedence.
if SITE_DIR.is_dir():
    app.mount("/", StaticFiles(directory=SITE_DIR, html=True), name="site")
