"""
Image ingestion — raw upload → blob storage key.
"""
from __future__ import annotations

import logging
import time
import uuid

from docvault.errors import UnsupportedMediaTypeError
from docvault.schemas import UploadRequest
from docvault.storage import BlobStore

logger = logging.getLogger(__name__)

EXTENSIONS: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/heic": "heic",
    "application/pdf": "pdf",
}


def extension_for(mime_type: str) -> str:
    mime = (mime_type or "").split(";")[0].strip().lower()
    try:
        return EXTENSIONS[mime]
    except KeyError:
        raise UnsupportedMediaTypeError(f"Unsupported media type: {mime_type!r}") from None


def validate_owner_id(owner_id: str) -> str:
    owner_id = (owner_id or "").strip()
    if not owner_id or "/" in owner_id or "\\" in owner_id or owner_id in (".", ".."):
        raise ValueError("owner id must be a non-empty identifier without path separators")
    return owner_id


def build_storage_key(owner_id: str, mime_type: str, now_ms: int | None = None) -> str:
    """``{owner}/{epoch-millis}-{random8}.{ext}``"""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{validate_owner_id(owner_id)}/{now_ms}-{uuid.uuid4().hex[:8]}.{extension_for(mime_type)}"


async def ingest(blob_store: BlobStore, upload: UploadRequest) -> str:
    """Write the upload to blob storage and return its key.

    Raises ``ValueError`` for an empty payload or bad owner id,
    ``UnsupportedMediaTypeError`` for unknown MIME types and
    ``StorageWriteError`` when the store rejects the write.
    """
    if not upload.content:
        raise ValueError("image payload must not be empty")
    key = build_storage_key(upload.owner_id, upload.mime_type)
    await blob_store.put(key, upload.content, upload.mime_type)
    logger.info("Ingested upload for %s as %s", upload.owner_id, key)
    return key
