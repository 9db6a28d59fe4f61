"""
FastAPI dependencies: caller identity, blob store, extraction client.
"""
from typing import Optional

from fastapi import Header, HTTPException

from docvault.config import settings
from docvault.pipeline.extraction import GeminiExtractionClient
from docvault.pipeline.ingestion import validate_owner_id
from docvault.storage import LocalBlobStore

_blob_store: Optional[LocalBlobStore] = None
_extractor: Optional[GeminiExtractionClient] = None


def get_owner_id(x_user_id: Optional[str] = Header(None)) -> str:
    """Owner id of the authenticated caller (auth itself happens upstream)."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="X-User-Id header required")
    try:
        return validate_owner_id(x_user_id)
    except ValueError as e:
        raise HTTPException(status_code=401, detail=str(e))


def get_blob_store() -> LocalBlobStore:
    global _blob_store
    if _blob_store is None:
        _blob_store = LocalBlobStore(
            settings.STORAGE_DIR,
            secret_key=settings.SECRET_KEY,
            base_url=settings.PUBLIC_BASE_URL,
        )
    return _blob_store


def get_extractor() -> GeminiExtractionClient:
    global _extractor
    if _extractor is None:
        _extractor = GeminiExtractionClient(
            get_blob_store(),
            api_key=settings.GEMINI_API_KEY,
            model=settings.GEMINI_MODEL,
            base_url=settings.GEMINI_BASE_URL,
            timeout=settings.EXTRACTION_TIMEOUT_SECONDS,
        )
    return _extractor
