"""
Document API endpoints.

POST   /api/documents                 — upload image → extract → stored document
GET    /api/documents                 — list caller's documents (newest first)
GET    /api/documents/stats           — counts for the dashboard
GET    /api/documents/{id}            — get one document
PATCH  /api/documents/{id}            — edit vendor / date / amount / type / reminder
DELETE /api/documents/{id}            — delete record, then its image (best effort)
GET    /api/documents/{id}/image-url  — signed, expiring image URL
GET    /api/reminders                 — documents whose reminder is due
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from docvault.config import settings
from docvault.database import get_db
from docvault.dependencies import get_blob_store, get_extractor, get_owner_id
from docvault.errors import (
    PersistenceError,
    StorageWriteError,
    UnsupportedMediaTypeError,
)
from docvault.models import DocumentModel
from docvault.pipeline import ingest_and_extract
from docvault.pipeline.extraction import Extractor
from docvault.reminders import due_reminders
from docvault.repository import CategoryRepository, DocumentRepository
from docvault.schemas import (
    DeleteResponse,
    Document,
    DocumentStats,
    DocumentUpdate,
    SignedUrlResponse,
)
from docvault.storage import LocalBlobStore

logger = logging.getLogger(__name__)
router = APIRouter()


def present(rows: list[DocumentModel], db: Session) -> list[Document]:
    names = CategoryRepository(db).names()
    return [Document.model_validate(r).with_display_type(names) for r in rows]


def _get_or_404(repo: DocumentRepository, owner_id: str, document_id: str) -> DocumentModel:
    row = repo.get(owner_id, document_id)
    if row is None:
        logger.warning("Document not found: %s (owner %s)", document_id, owner_id)
        raise HTTPException(status_code=404, detail="Document not found")
    return row


# ── POST /api/documents ──────────────────────────────────────────────────
@router.post("/documents", response_model=Document, status_code=201)
async def upload_document(
    file: UploadFile = File(...),
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    blob_store: LocalBlobStore = Depends(get_blob_store),
    extractor: Extractor = Depends(get_extractor),
):
    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    if len(data) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="Uploaded file is too large")

    mime_type = file.content_type or "application/octet-stream"
    logger.info("Upload: owner=%s  mime=%s  len=%d", owner_id, mime_type, len(data))

    try:
        document = await ingest_and_extract(
            owner_id,
            data,
            mime_type,
            blob_store=blob_store,
            extractor=extractor,
            repository=DocumentRepository(db),
            allowed_types=await run_in_threadpool(CategoryRepository(db).allowed_types),
        )
    except UnsupportedMediaTypeError as e:
        raise HTTPException(status_code=415, detail=str(e))
    except StorageWriteError as e:
        logger.error("Upload failed for %s: %s", owner_id, e)
        raise HTTPException(status_code=503, detail="Upload failed, please retry the upload")
    except PersistenceError as e:
        raise HTTPException(
            status_code=500,
            detail=f"Document could not be saved (orphaned image: {e.storage_key})",
        )

    names = await run_in_threadpool(CategoryRepository(db).names)
    return document.with_display_type(names)


# ── GET /api/documents ───────────────────────────────────────────────────
@router.get("/documents", response_model=list[Document])
def list_documents(
    q: Optional[str] = Query(None, description="matches vendor, type or amount"),
    doc_type: Optional[str] = Query(None, alias="type"),
    date_from: Optional[date] = Query(None, description="inclusive, YYYY-MM-DD"),
    date_to: Optional[date] = Query(None, description="inclusive, YYYY-MM-DD"),
    limit: Optional[int] = Query(None, ge=1, le=500),
    offset: int = Query(0, ge=0),
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    rows = DocumentRepository(db).list_by_owner(
        owner_id,
        q=q,
        doc_type=doc_type,
        date_from=date_from.isoformat() if date_from else None,
        date_to=date_to.isoformat() if date_to else None,
        limit=limit,
        offset=offset,
    )
    logger.info("Found %d documents for %s", len(rows), owner_id)
    return present(rows, db)


# ── GET /api/documents/stats ─────────────────────────────────────────────
@router.get("/documents/stats", response_model=DocumentStats)
def document_stats(owner_id: str = Depends(get_owner_id), db: Session = Depends(get_db)):
    return DocumentStats(**DocumentRepository(db).stats(owner_id))


# ── GET /api/documents/{document_id} ─────────────────────────────────────
@router.get("/documents/{document_id}", response_model=Document)
def get_document(
    document_id: str,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    row = _get_or_404(DocumentRepository(db), owner_id, document_id)
    return present([row], db)[0]


# ── PATCH /api/documents/{document_id} ───────────────────────────────────
@router.patch("/documents/{document_id}", response_model=Document)
def update_document(
    document_id: str,
    req: DocumentUpdate,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    repo = DocumentRepository(db)
    _get_or_404(repo, owner_id, document_id)

    fields = req.model_dump(exclude_unset=True)
    # vendor and type are required columns; null means "leave unchanged"
    for name in ("vendor", "type"):
        if name in fields and fields[name] is None:
            del fields[name]

    if "type" in fields and fields["type"] not in CategoryRepository(db).allowed_types():
        raise HTTPException(status_code=422, detail=f"Unknown document type: {fields['type']}")

    try:
        row = repo.update(owner_id, document_id, fields)
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    logger.info("Updated document %s fields=%s", document_id, sorted(fields))
    return present([row], db)[0]


# ── DELETE /api/documents/{document_id} ──────────────────────────────────
@router.delete("/documents/{document_id}", response_model=DeleteResponse)
async def delete_document(
    document_id: str,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    blob_store: LocalBlobStore = Depends(get_blob_store),
):
    repo = DocumentRepository(db)
    row = await run_in_threadpool(_get_or_404, repo, owner_id, document_id)
    storage_key = row.storage_key
    try:
        await run_in_threadpool(repo.delete, owner_id, document_id)
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))

    warnings: list[str] = []
    if not await blob_store.delete(storage_key):
        warnings.append(f"Image {storage_key} could not be removed from storage")

    logger.info("Deleted document %s (%d warnings)", document_id, len(warnings))
    return DeleteResponse(
        message="Document deleted successfully",
        document_id=document_id,
        warnings=warnings,
    )


# ── GET /api/documents/{document_id}/image-url ───────────────────────────
@router.get("/documents/{document_id}/image-url", response_model=SignedUrlResponse)
def document_image_url(
    document_id: str,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    blob_store: LocalBlobStore = Depends(get_blob_store),
):
    row = _get_or_404(DocumentRepository(db), owner_id, document_id)
    ttl = settings.SIGNED_URL_TTL_SECONDS
    return SignedUrlResponse(url=blob_store.signed_url(row.storage_key, ttl), expires_in=ttl)


# ── GET /api/reminders ───────────────────────────────────────────────────
@router.get("/reminders", response_model=list[Document])
def list_due_reminders(owner_id: str = Depends(get_owner_id), db: Session = Depends(get_db)):
    rows = DocumentRepository(db).with_reminders(owner_id)
    return present(due_reminders(rows, settings.REMINDER_LEAD_DAYS), db)
