"""
Document record writer.
"""
from __future__ import annotations

import logging
import uuid
from typing import Iterable, Optional

from docvault.models import DocumentModel
from docvault.repository import DocumentRepository
from docvault.schemas import DEFAULT_TYPE, Document, ExtractionResult

logger = logging.getLogger(__name__)

UNKNOWN_VENDOR = "Unknown Vendor"


def write_document(
    repository: DocumentRepository,
    owner_id: str,
    storage_key: str,
    result: ExtractionResult,
    allowed_types: Optional[Iterable[str]] = None,
) -> Document:
    """Persist one document atomically. Raises ``PersistenceError``."""
    doc_type = result.type or DEFAULT_TYPE
    if allowed_types is not None and doc_type not in set(allowed_types):
        logger.info("Type %r is not a current category, storing as %s", doc_type, DEFAULT_TYPE)
        doc_type = DEFAULT_TYPE

    row = DocumentModel(
        id=str(uuid.uuid4()),
        owner_id=owner_id,
        storage_key=storage_key,
        vendor=(result.vendor or "").strip() or UNKNOWN_VENDOR,
        date=result.date or None,
        amount=result.amount or None,
        type=doc_type,
        confidence=result.confidence,
        extraction_failed=result.extraction_failed,
        extraction_error=result.error_message,
    )
    row = repository.insert(row)
    logger.info("Stored document %s (%s, failed=%s)", row.id, storage_key, row.extraction_failed)
    return Document.model_validate(row)
