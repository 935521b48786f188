"""Marketplace moderation API: FastAPI application with DB-backed storage."""
from __future__ import annotations

import logging

from marketplace.logging_config import setup_logging

setup_logging()

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException

from config.settings import settings
from marketplace.db.engine import engine, get_session
from marketplace.db.tables import Base
from marketplace.errors import MarketplaceError

APP_VERSION = "0.1.0"

# ── Sentry Error Tracking ────────────────────────────────────────────────────
if settings.SENTRY_DSN:
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.logging import LoggingIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        integrations=[
            FastApiIntegration(),
            SqlalchemyIntegration(),
            LoggingIntegration(level=logging.WARNING, event_level=logging.ERROR),
        ],
        # Reports carry personal data
        send_default_pii=False,
    )

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate settings and create tables on startup."""
    from marketplace.startup_checks import validate_settings
    validate_settings()

    # Import all tables so they're registered with Base.metadata
    import marketplace.db.user_tables  # noqa: F401
    import marketplace.db.review_tables  # noqa: F401
    import marketplace.db.report_tables  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ready")

    yield

    logger.info("Shutting down, draining connections...")
    await engine.dispose()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Marketplace Moderation API",
    version=APP_VERSION,
    description="Reviews, ratings and trust & safety reports for the services marketplace",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Security headers
from marketplace.middleware.security_headers import SecurityHeadersMiddleware
app.add_middleware(SecurityHeadersMiddleware)

# Request ID tracing
from marketplace.middleware.request_id import RequestIDMiddleware
app.add_middleware(RequestIDMiddleware)

# Rate limiting
from marketplace.middleware.rate_limit import RateLimitMiddleware
app.add_middleware(RateLimitMiddleware)

# ---- Routers ----

from marketplace.api.reviews import router as reviews_router
app.include_router(reviews_router)

from marketplace.api.reports import router as reports_router
app.include_router(reports_router)


@app.get("/")
async def root():
    return {"app": "Marketplace Moderation API", "version": APP_VERSION}


@app.get("/health")
async def health(session: AsyncSession = Depends(get_session)):
    """Deep health check: validates DB connectivity."""
    try:
        await session.execute(text("SELECT 1"))
        db_status = "connected"
    except SQLAlchemyError:
        logger.warning("Health check could not reach the database", exc_info=True)
        db_status = "error"
    status = "ok" if db_status == "connected" else "degraded"
    return {"status": status, "db": db_status, "version": APP_VERSION}


@app.get("/ready")
async def readiness(session: AsyncSession = Depends(get_session)):
    """Readiness probe for orchestrators.

    Returns 503 if not ready to serve traffic.
    """
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        return JSONResponse(status_code=503, content={"ready": False, "reason": "database unavailable"})
    return {"ready": True}


# --- Structured Error Responses ---

_ERROR_CODES = {
    400: "validation_error",
    401: "unauthenticated",
    403: "forbidden",
    404: "not_found",
    409: "conflict",
    429: "rate_limited",
}


def _error(status_code: int, error: str, message: str, details=None) -> JSONResponse:
    content = {"success": False, "error": error, "message": message}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(MarketplaceError)
async def domain_error_handler(request: Request, exc: MarketplaceError):
    """Domain errors raised by the services carry their own status and code."""
    details = [{"field": f} for f in exc.fields] if exc.fields else None
    return _error(exc.status_code, exc.error, exc.message, details)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Return clean, structured validation errors instead of raw Pydantic output."""
    errors = []
    for err in exc.errors():
        field = " → ".join(str(loc) for loc in err["loc"]) if err.get("loc") else "unknown"
        errors.append({"field": field, "message": err["msg"]})
    return _error(400, "validation_error", "Invalid request data", errors)


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    """Consistent error envelope for all HTTP errors."""
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    response = _error(exc.status_code, _ERROR_CODES.get(exc.status_code, "error"), message)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    """Catch-all for unhandled exceptions: never leak stack traces."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", "Something went wrong. Please try again.")
