"""
DocVault upload pipeline.

Orchestrates: ingest → extract → sanitize (or fallback) → write.
"""
import logging
from datetime import date
from typing import Callable, Iterable, Optional

from starlette.concurrency import run_in_threadpool

from docvault.errors import ExtractionError, PersistenceError
from docvault.pipeline.extraction import Extractor
from docvault.pipeline.fallback import fallback_result
from docvault.pipeline.ingestion import ingest
from docvault.pipeline.sanitizer import is_usable, sanitize
from docvault.pipeline.writer import write_document
from docvault.repository import DocumentRepository
from docvault.schemas import Document, ExtractionResult, UploadRequest
from docvault.storage import BlobStore

logger = logging.getLogger(__name__)


async def reconcile(
    extractor: Extractor,
    storage_key: str,
    today: Optional[Callable[[], date]] = None,
) -> ExtractionResult:
    """Extract and sanitize, degrading to the fallback result on any AI failure."""
    today = today or date.today
    try:
        raw = await extractor.extract(storage_key)
    except ExtractionError as e:
        logger.warning("AI analysis failed for %s, falling back to manual review: %s", storage_key, e)
        return fallback_result(str(e), today())

    result = sanitize(raw)
    if not is_usable(result):
        logger.warning("AI analysis for %s produced no usable fields, falling back", storage_key)
        return fallback_result("No usable fields extracted", today())
    return result


async def ingest_and_extract(
    owner_id: str,
    image_bytes: bytes,
    mime_type: str,
    *,
    blob_store: BlobStore,
    extractor: Extractor,
    repository: DocumentRepository,
    allowed_types: Optional[Iterable[str]] = None,
    today: Optional[Callable[[], date]] = None,
) -> Document:
    """Run the full upload pipeline for one image.

    Never raises because the model is unavailable; only ingestion errors
    (``StorageWriteError`` and friends) and ``PersistenceError`` escape.
    """
    upload = UploadRequest(owner_id=owner_id, content=image_bytes, mime_type=mime_type)

    logger.info("[1/4] Ingesting %d bytes for %s", len(image_bytes), owner_id)
    storage_key = await ingest(blob_store, upload)

    logger.info("[2/4] Extracting fields from %s", storage_key)
    result = await reconcile(extractor, storage_key, today)
    logger.info("[3/4] Reconciled: vendor=%r failed=%s", result.vendor, result.extraction_failed)

    logger.info("[4/4] Writing document record")
    try:
        return await run_in_threadpool(
            write_document, repository, owner_id, storage_key, result, allowed_types
        )
    except PersistenceError:
        logger.error("Orphaned blob %s: image stored but document write failed", storage_key)
        raise
