"""
Evidence Blob Storage
=====================
Defines the interface for evidence blob storage and the local-filesystem
backend used by the portal.

Design principles:
  - Keys are generated server-side and never derived from user input.
  - Keys are flat: the blob area is shared by all cases and carries no
    case namespace. Access control lives at the metadata-row layer.
  - Writes go to a temp file and are renamed into place; a failed or
    oversized write leaves nothing behind.
  - Existing keys are never overwritten.
"""

from __future__ import annotations

import abc
import logging
import os
import re
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional

logger = logging.getLogger(__name__)

COPY_BLOCK_SIZE = 1 << 16  # 64 KiB

_EXT_RE = re.compile(r"^\.[a-z0-9]{1,10}$")


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StorePutResult:
    """Result of a put (write) operation."""

    success: bool
    key: str
    size_bytes: int
    error: Optional[str] = None
    limit_exceeded: bool = False


# ---------------------------------------------------------------------------
# Key generation
# ---------------------------------------------------------------------------


def generate_storage_key(declared_name: str) -> str:
    """
    Build an opaque storage key: ``<epoch-ms>-<random hex><ext>``.

    Only the extension of *declared_name* survives, and only if it is a
    short alphanumeric suffix.
    """
    base = os.path.basename(declared_name.replace("\\", "/"))
    ext = os.path.splitext(base)[1].lower()
    if not _EXT_RE.match(ext):
        ext = ""
    return f"{int(time.time() * 1000)}-{secrets.token_hex(8)}{ext}"


# ---------------------------------------------------------------------------
# Abstract interface
# ---------------------------------------------------------------------------


class BlobStore(abc.ABC):
    """Uniform interface for evidence blob storage."""

    @abc.abstractmethod
    def put_stream(
        self, key: str, stream: BinaryIO, max_bytes: Optional[int] = None
    ) -> StorePutResult:
        """
        Write *stream* under *key*.

        If more than *max_bytes* are read the write is abandoned and the
        result has ``limit_exceeded=True``.
        """

    @abc.abstractmethod
    def open(self, key: str) -> Optional[BinaryIO]:
        """Return a readable binary stream for the key, or None."""

    @abc.abstractmethod
    def delete(self, key: str) -> bool:
        """Delete the key. Returns True if deleted, False if not found."""

    @abc.abstractmethod
    def size(self, key: str) -> Optional[int]:
        """Return the size in bytes, or None if key does not exist."""


# ---------------------------------------------------------------------------
# LocalFSStore
# ---------------------------------------------------------------------------


class LocalFSStore(BlobStore):
    """
    Filesystem-backed storage.

    Root directory is created on init. All keys are resolved relative to root.
    """

    def __init__(self, root: str = "uploads/evidence"):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        logger.info("LocalFSStore initialized at %s", self.root)

    def _resolve(self, key: str) -> Path:
        # Prevent directory traversal
        resolved = (self.root / key).resolve()
        if resolved.parent != self.root:
            raise ValueError(f"Key escapes store root: {key}")
        return resolved

    def put_stream(
        self, key: str, stream: BinaryIO, max_bytes: Optional[int] = None
    ) -> StorePutResult:
        path = self._resolve(key)
        if path.exists():
            return StorePutResult(
                success=False,
                key=key,
                size_bytes=0,
                error=f"Key already exists: {key}",
            )

        tmp = path.with_name(path.name + ".part")
        size = 0
        renamed = False
        try:
            with open(tmp, "wb") as f:
                while True:
                    chunk = stream.read(COPY_BLOCK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if max_bytes is not None and size > max_bytes:
                        break
                    f.write(chunk)

            if max_bytes is not None and size > max_bytes:
                return StorePutResult(
                    success=False,
                    key=key,
                    size_bytes=size,
                    error=f"Upload exceeds {max_bytes} bytes",
                    limit_exceeded=True,
                )

            tmp.rename(path)
            renamed = True
            return StorePutResult(success=True, key=key, size_bytes=size)

        except OSError as exc:
            logger.error("Blob write failed for key %s: %s", key, exc)
            return StorePutResult(
                success=False,
                key=key,
                size_bytes=0,
                error=str(exc),
            )

        finally:
            # Every path except a completed rename leaves no partial file
            if not renamed:
                tmp.unlink(missing_ok=True)

    def open(self, key: str) -> Optional[BinaryIO]:
        path = self._resolve(key)
        if not path.is_file():
            return None
        return open(path, "rb")

    def delete(self, key: str) -> bool:
        path = self._resolve(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    def size(self, key: str) -> Optional[int]:
        path = self._resolve(key)
        return path.stat().st_size if path.is_file() else None
