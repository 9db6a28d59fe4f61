"""
Unit tests for the upload pipeline — ingestion, reconciliation, writer,
and the full ``ingest_and_extract`` flow with substituted collaborators.
"""
import threading
from datetime import date

import httpx
import pytest

from docvault.errors import (
    ExtractionParseError,
    PersistenceError,
    StorageWriteError,
    UnsupportedMediaTypeError,
)
from docvault.models import DocumentModel
from docvault.pipeline import ingest_and_extract, reconcile
from docvault.pipeline.extraction import GeminiExtractionClient
from docvault.pipeline.ingestion import build_storage_key, ingest
from docvault.pipeline.writer import UNKNOWN_VENDOR, write_document
from docvault.repository import DocumentRepository
from docvault.schemas import ExtractionResult, UploadRequest
from docvault.storage import LocalBlobStore
from tests.conftest import JPEG_BYTES, OWNER, gemini_body

FIXED_DAY = date(2025, 1, 31)


class RejectingBlobStore:
    """Blob store whose writes always fail."""

    async def put(self, key, data, mime_type):
        raise StorageWriteError(key, "quota exceeded")

    async def get(self, key):
        raise AssertionError("get must not be called")

    async def delete(self, key):
        return False

    def signed_url(self, key, ttl_seconds):
        return ""


class UnreadableBlobStore(LocalBlobStore):
    """Writes succeed, reads fail with a permission error."""

    async def get(self, key):
        raise PermissionError(13, "Permission denied", key)


class ThreadRecordingRepository(DocumentRepository):
    insert_thread = None

    def insert(self, row):
        self.insert_thread = threading.get_ident()
        return super().insert(row)


class RecordingExtractor:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls: list[str] = []

    async def extract(self, storage_key):
        self.calls.append(storage_key)
        if self.error is not None:
            raise self.error
        return self.result


# =====================================================================
# Ingestion
# =====================================================================
class TestIngestion:
    def test_storage_key_shape(self):
        key = build_storage_key(OWNER, "image/png", now_ms=1710500000000)
        owner, name = key.split("/")
        assert owner == OWNER
        assert name.startswith("1710500000000-")
        assert name.endswith(".png")

    def test_storage_keys_are_unique(self):
        keys = {build_storage_key(OWNER, "image/jpeg", now_ms=1) for _ in range(50)}
        assert len(keys) == 50

    @pytest.mark.parametrize("owner", ["", "a/b", ".."])
    def test_bad_owner(self, owner):
        with pytest.raises(ValueError):
            build_storage_key(owner, "image/jpeg")

    def test_unsupported_mime(self):
        with pytest.raises(UnsupportedMediaTypeError):
            build_storage_key(OWNER, "text/plain")

    @pytest.mark.asyncio
    async def test_ingest_writes_blob(self, blob_store):
        key = await ingest(blob_store, UploadRequest(owner_id=OWNER, content=JPEG_BYTES, mime_type="image/jpeg"))
        assert key.startswith(f"{OWNER}/")
        assert await blob_store.get(key) == JPEG_BYTES

    @pytest.mark.asyncio
    async def test_ingest_rejects_empty(self, blob_store):
        with pytest.raises(ValueError):
            await ingest(blob_store, UploadRequest(owner_id=OWNER, content=b"", mime_type="image/jpeg"))


# =====================================================================
# Reconciliation
# =====================================================================
class TestReconcile:
    @pytest.mark.asyncio
    async def test_success_is_sanitized(self):
        extractor = RecordingExtractor(
            ExtractionResult(vendor="ACME Corp", date="2024-03-15", amount="€1,251.74", type="invoice")
        )
        result = await reconcile(extractor, "k.jpg")
        assert result.amount == "1251.74"
        assert result.type == "Invoice"
        assert result.extraction_failed is False

    @pytest.mark.asyncio
    async def test_extraction_error_falls_back(self):
        extractor = RecordingExtractor(error=ExtractionParseError("truncated"))
        result = await reconcile(extractor, "k.jpg", today=lambda: FIXED_DAY)
        assert result.extraction_failed is True
        assert result.vendor == "Review Needed"
        assert result.date == "2025-01-31"
        assert result.error_message == "truncated"

    @pytest.mark.asyncio
    async def test_unusable_result_falls_back(self):
        extractor = RecordingExtractor(ExtractionResult(vendor=" ", amount="n/a", date="??"))
        result = await reconcile(extractor, "k.jpg", today=lambda: FIXED_DAY)
        assert result.extraction_failed is True


# =====================================================================
# Writer
# =====================================================================
class TestWriter:
    def test_vendor_default_and_nulls(self, db):
        doc = write_document(
            DocumentRepository(db), OWNER, "user-123/1.jpg",
            ExtractionResult(vendor=None, amount=None, type="Receipt"),
        )
        assert doc.vendor == UNKNOWN_VENDOR
        assert doc.amount is None
        assert doc.date is None
        assert doc.type == "Receipt"
        assert db.query(DocumentModel).count() == 1

    def test_type_outside_category_set(self, db):
        doc = write_document(
            DocumentRepository(db), OWNER, "user-123/2.jpg",
            ExtractionResult(vendor="X", type="Contract"),
            allowed_types={"Invoice", "Other"},
        )
        assert doc.type == "Other"

    def test_rejected_insert_names_orphan(self, db):
        repo = DocumentRepository(db)
        write_document(repo, OWNER, "user-123/dup.jpg", ExtractionResult(vendor="A"))
        with pytest.raises(PersistenceError) as exc:
            write_document(repo, OWNER, "user-123/dup.jpg", ExtractionResult(vendor="B"))
        assert exc.value.storage_key == "user-123/dup.jpg"
        assert db.query(DocumentModel).count() == 1


# =====================================================================
# Full pipeline
# =====================================================================
class TestIngestAndExtract:
    @pytest.mark.asyncio
    async def test_acme_invoice(self, db, blob_store, extractor, fake_model):
        doc = await ingest_and_extract(
            OWNER, JPEG_BYTES, "image/jpeg",
            blob_store=blob_store, extractor=extractor, repository=DocumentRepository(db),
        )
        assert doc.vendor == "ACME Corp"
        assert doc.date == "2024-03-15"
        assert doc.amount == "1251.74"
        assert doc.type == "Invoice"
        assert doc.extraction_failed is False
        assert await blob_store.get(doc.storage_key) == JPEG_BYTES

    @pytest.mark.asyncio
    async def test_http_500_saves_review_record(self, db, blob_store, extractor, fake_model):
        fake_model.status_code = 500
        fake_model.body = {"error": "upstream"}

        doc = await ingest_and_extract(
            OWNER, JPEG_BYTES, "image/jpeg",
            blob_store=blob_store, extractor=extractor, repository=DocumentRepository(db),
            today=lambda: FIXED_DAY,
        )
        assert doc.extraction_failed is True
        assert doc.vendor == "Review Needed"
        assert doc.type == "Other"
        assert doc.amount is None
        assert doc.date == "2025-01-31"
        assert doc.confidence == 0
        assert "500" in doc.extraction_error

    @pytest.mark.asyncio
    async def test_truncated_response_does_not_raise(self, db, blob_store, extractor, fake_model):
        fake_model.body = gemini_body('{"vendor": "ACME Corp", "date": "2024-')

        doc = await ingest_and_extract(
            OWNER, JPEG_BYTES, "image/png",
            blob_store=blob_store, extractor=extractor, repository=DocumentRepository(db),
        )
        assert doc.extraction_failed is True
        assert doc.storage_key.endswith(".png")

    @pytest.mark.asyncio
    async def test_storage_failure_short_circuits(self, db):
        extractor = RecordingExtractor(ExtractionResult(vendor="never"))
        with pytest.raises(StorageWriteError):
            await ingest_and_extract(
                OWNER, JPEG_BYTES, "image/jpeg",
                blob_store=RejectingBlobStore(), extractor=extractor, repository=DocumentRepository(db),
            )
        assert extractor.calls == []
        assert db.query(DocumentModel).count() == 0

    @pytest.mark.asyncio
    async def test_persistence_failure_propagates(self, db, blob_store, extractor):
        DocumentModel.__table__.drop(bind=db.get_bind())

        with pytest.raises(PersistenceError) as exc:
            await ingest_and_extract(
                OWNER, JPEG_BYTES, "image/jpeg",
                blob_store=blob_store, extractor=extractor, repository=DocumentRepository(db),
            )
        # the image stays behind as an orphan
        assert await blob_store.get(exc.value.storage_key) == JPEG_BYTES

    @pytest.mark.asyncio
    async def test_oversized_confidence_does_not_raise(self, db, blob_store, extractor, fake_model):
        huge = "1" + "0" * 400
        fake_model.body = gemini_body(
            '{"vendor": "ACME", "date": "2024-03-15", "amount": "1", '
            '"type": "Invoice", "confidence": ' + huge + "}"
        )

        doc = await ingest_and_extract(
            OWNER, JPEG_BYTES, "image/jpeg",
            blob_store=blob_store, extractor=extractor, repository=DocumentRepository(db),
        )
        assert doc.vendor == "ACME"
        assert doc.confidence == 0
        assert doc.extraction_failed is False
        assert db.query(DocumentModel).count() == 1

    @pytest.mark.asyncio
    async def test_unreadable_blob_saves_review_record(self, db, tmp_path, fake_model):
        store = UnreadableBlobStore(tmp_path / "blobs", secret_key="test-secret")
        http = httpx.AsyncClient(transport=httpx.MockTransport(fake_model.handler))
        extractor = GeminiExtractionClient(store, api_key="test-key", http_client=http)

        doc = await ingest_and_extract(
            OWNER, JPEG_BYTES, "image/jpeg",
            blob_store=store, extractor=extractor, repository=DocumentRepository(db),
            today=lambda: FIXED_DAY,
        )
        assert doc.extraction_failed is True
        assert doc.vendor == "Review Needed"
        assert "Permission denied" in doc.extraction_error
        assert fake_model.requests == []

    @pytest.mark.asyncio
    async def test_record_write_runs_off_the_event_loop(self, db, blob_store, extractor):
        repo = ThreadRecordingRepository(db)

        await ingest_and_extract(
            OWNER, JPEG_BYTES, "image/jpeg",
            blob_store=blob_store, extractor=extractor, repository=repo,
        )
        assert repo.insert_thread is not None
        assert repo.insert_thread != threading.get_ident()
