"""
Structured Logging
==================
Configures Python's logging for the API process and attaches a request-id
middleware to the FastAPI app.

Usage:
    from caseportal.core.structured_logging import configure_logging, RequestLoggingMiddleware
    configure_logging()
    app.add_middleware(RequestLoggingMiddleware)

Each JSON log line contains:
  - timestamp (ISO-8601 UTC)
  - level
  - logger (module name)
  - message
  - request_id / method / path (when emitted while serving a request)
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
import uuid
from datetime import datetime, timezone
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from caseportal.core.config import settings

_request_ctx: contextvars.ContextVar[Optional[dict]] = contextvars.ContextVar(
    "caseportal_request", default=None
)


class _JSONFormatter(logging.Formatter):
    """Emit each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        ctx = _request_ctx.get()
        if ctx:
            payload.update(ctx)

        if record.exc_info and record.exc_info[0] is not None:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def current_request_id() -> Optional[str]:
    ctx = _request_ctx.get()
    return ctx["request_id"] if ctx else None


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Assign a request id, log request start/end, echo ``X-Request-ID``."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        token = _request_ctx.set(
            {
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
            }
        )
        logger = logging.getLogger("caseportal.http")
        try:
            logger.info("request_start %s %s", request.method, request.url.path)
            response = await call_next(request)
            logger.info(
                "request_end %s %s status=%d",
                request.method,
                request.url.path,
                response.status_code,
            )
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            _request_ctx.reset(token)


def configure_logging(*, level: Optional[str] = None, json_lines: Optional[bool] = None) -> None:
    """
    Configure the root logger.

    Parameters
    ----------
    level : str, optional
        Override log level (DEBUG, INFO, WARNING, ERROR). Defaults to
        ``settings.log_level``.
    json_lines : bool, optional
        Force JSON output. Defaults to ``settings.log_json`` or production env.
    """
    if level is None:
        level = settings.log_level
    if json_lines is None:
        json_lines = settings.log_json or settings.app_env == "production"

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers to avoid duplicate output
    for handler in root.handlers[:]:
        root.handlers.remove(handler)

    handler = logging.StreamHandler(sys.stdout)
    if json_lines:
        handler.setFormatter(_JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
    root.addHandler(handler)

    logging.getLogger("caseportal").info(
        "Logging configured (level=%s, json=%s)", level, json_lines
    )
