"""
Evidence Files
==============
Upload, list, download and delete evidence attached to a case.

Design principles:
  - Ownership is always checked through the parent case, never the file.
  - A foreign file and a missing file both raise NotFound.
  - Blob keys are generated here; the client-supplied name is display-only.
  - No orphans: a blob is removed if its metadata row cannot be written,
    and a metadata row is removed even if its blob cannot be.
"""

from __future__ import annotations

import logging
import os
from typing import BinaryIO, Optional

from sqlalchemy.orm import Session

from caseportal.core.errors import NotFound, StorageFailure, ValidationError
from caseportal.core.request_limits import size_limit_message
from caseportal.models.evidence_file import EvidenceFile
from caseportal.models.user import User
from caseportal.services.access import load_authorized_case
from caseportal.services.storage_backend import BlobStore, generate_storage_key

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = frozenset({
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "image/jpeg",
    "image/png",
    "image/gif",
    "text/plain",
})

MAX_FILE_NAME_LENGTH = 255


def _normalize_mime(declared_type: Optional[str]) -> str:
    return (declared_type or "").split(";", 1)[0].strip().lower()


def _display_name(declared_name: Optional[str]) -> str:
    name = os.path.basename((declared_name or "").replace("\\", "/")).strip()
    return name[:MAX_FILE_NAME_LENGTH]


def _load_authorized_file(db: Session, file_id: str, actor: Optional[User]) -> EvidenceFile:
    ef = db.get(EvidenceFile, file_id)
    if ef is None:
        raise NotFound(f"Evidence {file_id} does not exist", safe_message="Evidence file not found")
    try:
        load_authorized_case(db, ef.case_id, actor)
    except NotFound:
        raise NotFound(
            f"Evidence {file_id} not visible to actor {getattr(actor, 'id', None)}",
            safe_message="Evidence file not found",
        ) from None
    return ef


def upload(
    db: Session,
    store: BlobStore,
    case_id: str,
    actor: Optional[User],
    stream: BinaryIO,
    declared_name: Optional[str],
    declared_type: Optional[str],
    *,
    max_bytes: int,
) -> EvidenceFile:
    """Store an uploaded file and record its metadata."""
    case = load_authorized_case(db, case_id, actor)

    file_type = _normalize_mime(declared_type)
    if file_type not in ALLOWED_MIME_TYPES:
        raise ValidationError.for_field(
            "file",
            f"Unsupported file type: {file_type or 'unknown'}. "
            "Allowed: PDF, Word documents, JPEG, PNG, GIF and plain text.",
        )

    file_name = _display_name(declared_name)
    if not file_name:
        raise ValidationError.for_field("file", "A file name is required.")

    key = generate_storage_key(file_name)
    result = store.put_stream(key, stream, max_bytes=max_bytes)
    if result.limit_exceeded:
        raise ValidationError.for_field("file", size_limit_message(max_bytes))
    if not result.success:
        raise StorageFailure(f"Blob write failed for case {case.id} key {key}: {result.error}")

    try:
        if result.size_bytes == 0:
            raise ValidationError.for_field("file", "File is empty.")

        ef = EvidenceFile(
            case_id=case.id,
            uploaded_by=actor.id,
            file_name=file_name,
            file_type=file_type,
            file_size=str(result.size_bytes),
            storage_path=key,
        )
        db.add(ef)
        db.commit()
        db.refresh(ef)
    except Exception:
        db.rollback()
        if store.delete(key):
            logger.info("Removed blob %s after failed upload to case %s", key, case.id)
        raise

    logger.info(
        "Evidence %s uploaded to case %s by %s (%s, %d bytes)",
        ef.id,
        case.id,
        actor.id,
        file_type,
        result.size_bytes,
    )
    return ef


def list_evidence(db: Session, case_id: str, actor: Optional[User]) -> list[EvidenceFile]:
    case = load_authorized_case(db, case_id, actor)
    return (
        db.query(EvidenceFile)
        .filter(EvidenceFile.case_id == case.id)
        .order_by(EvidenceFile.created_at.desc())
        .all()
    )


def download(
    db: Session, store: BlobStore, file_id: str, actor: Optional[User]
) -> tuple[BinaryIO, EvidenceFile]:
    """Return an open blob stream plus its metadata row.

    Metadata without a blob is an integrity failure and surfaces as NotFound.
    A blob whose size disagrees with its row is logged and still served.
    """
    ef = _load_authorized_file(db, file_id, actor)

    on_disk = store.size(ef.storage_path)
    if on_disk is not None and str(on_disk) != ef.file_size:
        logger.error(
            "Evidence blob size mismatch: file=%s key=%s recorded=%s on_disk=%d",
            ef.id,
            ef.storage_path,
            ef.file_size,
            on_disk,
        )

    stream = store.open(ef.storage_path) if on_disk is not None else None
    if stream is None:
        logger.error(
            "Evidence blob missing: file=%s case=%s key=%s",
            ef.id,
            ef.case_id,
            ef.storage_path,
        )
        raise NotFound(
            f"Blob {ef.storage_path} missing for evidence {ef.id}",
            safe_message="File not found on server",
        )
    return stream, ef


def delete(db: Session, store: BlobStore, file_id: str, actor: Optional[User]) -> None:
    """Remove the blob (best-effort), then always remove the metadata row."""
    ef = _load_authorized_file(db, file_id, actor)
    key = ef.storage_path
    case_id = ef.case_id

    try:
        if not store.delete(key):
            logger.warning("Evidence blob already absent: file=%s key=%s", ef.id, key)
    except (OSError, ValueError) as exc:
        logger.error(
            "Evidence blob delete failed: file=%s case=%s key=%s: %s",
            ef.id,
            case_id,
            key,
            exc,
        )
    finally:
        db.delete(ef)
        db.commit()

    logger.info("Evidence %s deleted from case %s by %s", file_id, case_id, actor.id)
