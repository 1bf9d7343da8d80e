"""
Upload Size Guard
=================
Rejects oversized evidence uploads before the multipart body is parsed
and spooled to disk.

Two checks, both applied only to upload routes:
  - A declared ``Content-Length`` above the ceiling is refused at once,
    without reading the body.
  - Bodies without a declared length are counted as they are received;
    the request is aborted as soon as the ceiling is passed.

The ceiling is the per-file limit plus a small allowance for multipart
framing, so a file exactly at the limit still fits.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Pattern

from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

MULTIPART_OVERHEAD_BYTES = 64 * 1024

EVIDENCE_UPLOAD_PATH = re.compile(r"^/api/case-reviews/[^/]+/evidence/?$")


def size_limit_message(max_bytes: int) -> str:
    return f"File exceeds the {max_bytes // (1024 * 1024)}MB limit."


class _BodyTooLarge(Exception):
    pass


class UploadSizeLimitMiddleware:
    """Pure ASGI middleware; answers 400 in the standard validation envelope."""

    def __init__(
        self,
        app: ASGIApp,
        *,
        max_file_bytes: int,
        path_pattern: Pattern[str] = EVIDENCE_UPLOAD_PATH,
    ):
        self.app = app
        self.max_file_bytes = max_file_bytes
        self.max_body_bytes = max_file_bytes + MULTIPART_OVERHEAD_BYTES
        self.path_pattern = path_pattern

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if (
            scope["type"] != "http"
            or scope["method"] != "POST"
            or not self.path_pattern.match(scope["path"])
        ):
            await self.app(scope, receive, send)
            return

        declared = _content_length(scope)
        if declared is not None and declared > self.max_body_bytes:
            logger.info(
                "Upload refused before reading: %s declared %d bytes", scope["path"], declared
            )
            await self._reject(send)
            return

        received = 0
        response_started = False

        async def counting_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_body_bytes:
                    raise _BodyTooLarge()
            return message

        async def tracking_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, counting_receive, tracking_send)
        except _BodyTooLarge:
            logger.info("Upload aborted mid-stream: %s passed %d bytes", scope["path"], received)
            if not response_started:
                await self._reject(send)

    async def _reject(self, send: Send) -> None:
        body = json.dumps(
            {
                "message": "Validation failed",
                "errors": [{"field": "file", "message": size_limit_message(self.max_file_bytes)}],
            }
        ).encode()
        await send(
            {
                "type": "http.response.start",
                "status": 400,
                "headers": [
                    (b"content-type", b"application/json"),
                    (b"content-length", str(len(body)).encode()),
                    (b"connection", b"close"),
                ],
            }
        )
        await send({"type": "http.response.body", "body": body})


def _content_length(scope: Scope):
    for name, value in scope.get("headers", ()):
        if name == b"content-length":
            try:
                return int(value)
            except ValueError:
                return None
    return None
