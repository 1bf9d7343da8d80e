"""Evidence API: multipart upload, listing, download and delete."""

from __future__ import annotations

from typing import BinaryIO, Iterator
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Response, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from caseportal.api.deps import get_evidence_store, require_actor
from caseportal.api.schemas import EvidenceOut
from caseportal.core.config import settings
from caseportal.core.database import get_db
from caseportal.models.user import User
from caseportal.services import evidence
from caseportal.services.storage_backend import COPY_BLOCK_SIZE, BlobStore

router = APIRouter(tags=["evidence"])


def _iter_blob(stream: BinaryIO) -> Iterator[bytes]:
    with stream:
        while True:
            chunk = stream.read(COPY_BLOCK_SIZE)
            if not chunk:
                break
            yield chunk


def _content_disposition(file_name: str) -> str:
    ascii_name = file_name.encode("ascii", "ignore").decode().replace('"', "") or "download"
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(file_name)}"


@router.post("/case-reviews/{case_id}/evidence", response_model=EvidenceOut, status_code=201)
def upload_evidence(
    case_id: str,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    actor: User = Depends(require_actor),
    store: BlobStore = Depends(get_evidence_store),
):
    """Upload one file (multipart field ``file``), max 10 MiB."""
    return evidence.upload(
        db,
        store,
        case_id,
        actor,
        file.file,
        file.filename,
        file.content_type,
        max_bytes=settings.max_upload_bytes,
    )


@router.get("/case-reviews/{case_id}/evidence", response_model=list[EvidenceOut])
def list_evidence(
    case_id: str,
    db: Session = Depends(get_db),
    actor: User = Depends(require_actor),
):
    return evidence.list_evidence(db, case_id, actor)


@router.get("/evidence/{file_id}/download")
def download_evidence(
    file_id: str,
    db: Session = Depends(get_db),
    actor: User = Depends(require_actor),
    store: BlobStore = Depends(get_evidence_store),
):
    stream, ef = evidence.download(db, store, file_id, actor)
    return StreamingResponse(
        _iter_blob(stream),
        media_type=ef.file_type,
        headers={"Content-Disposition": _content_disposition(ef.file_name)},
    )


@router.delete("/evidence/{file_id}", status_code=204)
def delete_evidence(
    file_id: str,
    db: Session = Depends(get_db),
    actor: User = Depends(require_actor),
    store: BlobStore = Depends(get_evidence_store),
):
    evidence.delete(db, store, file_id, actor)
    return Response(status_code=204)
