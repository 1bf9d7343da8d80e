"""Case portal: FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from caseportal import __version__
from caseportal.api.deps import get_evidence_store
from caseportal.api.routes import (
    admin_router,
    auth_router,
    case_reviews_router,
    evidence_router,
    notes_router,
)
from caseportal.core.config import settings
from caseportal.core.database import engine
from caseportal.core.errors import PortalError, StorageFailure, ValidationError
from caseportal.core.request_limits import UploadSizeLimitMiddleware
from caseportal.core.structured_logging import (
    RequestLoggingMiddleware,
    configure_logging,
    current_request_id,
)

logger = logging.getLogger(__name__)


def _run_migrations() -> None:
    """Apply pending Alembic migrations on startup."""
    try:
        from alembic import command
        from alembic.config import Config as AlembicConfig

        cfg = AlembicConfig("alembic.ini")
        cfg.attributes["configure_logger"] = False
        command.upgrade(cfg, "head")
        logger.info("Alembic migrations applied.")
    except Exception as exc:
        logger.warning("Alembic migration skipped: %s", exc)


@asynccontextmanager
async def lifespan(application: FastAPI):
    """Startup / shutdown lifecycle hook."""
    configure_logging()
    if settings.run_migrations:
        _run_migrations()
    # Creates the blob directory
    get_evidence_store()
    yield


app = FastAPI(title="Case Portal", version=__version__, lifespan=lifespan)

# ── Middleware ───────────────────────────────────────────────────────
app.add_middleware(UploadSizeLimitMiddleware, max_file_bytes=settings.max_upload_bytes)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Error handling ───────────────────────────────────────────────────


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    if isinstance(exc, StorageFailure):
        logger.error(
            "Storage failure on %s %s (request_id=%s): %s",
            request.method,
            request.url.path,
            current_request_id(),
            exc,
        )
    body = {"message": exc.safe_message}
    if isinstance(exc, ValidationError):
        body["errors"] = exc.errors
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        # Drop the leading "body"/"query"/"path" location segment
        loc = [str(part) for part in err.get("loc", ())[1:]]
        errors.append({"field": ".".join(loc) or "body", "message": err.get("msg", "Invalid value")})
    return JSONResponse(status_code=400, content={"message": "Validation failed", "errors": errors})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Internal server error"})


# ── Routers ──────────────────────────────────────────────────────────
app.include_router(case_reviews_router, prefix="/api")
app.include_router(notes_router, prefix="/api")
app.include_router(evidence_router, prefix="/api")
app.include_router(auth_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/health")
def health():
    """Health check with database status."""
    result = {
        "status": "healthy",
        "version": __version__,
        "database": "disconnected",
    }

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        result["database"] = "connected"
    except Exception as exc:
        logger.warning("Database health check failed: %s", exc)
        result["status"] = "degraded"

    return result
