"""
Shared pytest fixtures — in‑memory SQLite, temp blob store, fake model
endpoint and a FastAPI TestClient wired to all of them.
"""
import json
import os
import tempfile

_TMP = tempfile.mkdtemp(prefix="docvault-tests-")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("DATA_DIR", _TMP)
os.environ.setdefault("STORAGE_DIR", os.path.join(_TMP, "documents"))

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from docvault.database import Base, get_db  # noqa: E402
from docvault.dependencies import get_blob_store, get_extractor  # noqa: E402
from docvault.models import DocumentModel  # noqa: E402,F401  — register models
from docvault.main import app  # noqa: E402
from docvault.pipeline.extraction import GeminiExtractionClient  # noqa: E402
from docvault.repository import CategoryRepository  # noqa: E402
from docvault.storage import LocalBlobStore  # noqa: E402

# StaticPool ensures all connections share the same in-memory database
_ENGINE = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_Session = sessionmaker(autocommit=False, autoflush=False, bind=_ENGINE)

OWNER = "user-123"
JPEG_BYTES = b"\xff\xd8\xff\xe0fake-jpeg-payload"


def gemini_body(payload) -> dict:
    """Wrap ``payload`` (dict or raw text) in a generateContent response."""
    text = payload if isinstance(payload, str) else json.dumps(payload)
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


class FakeModel:
    """Stands in for the Gemini endpoint via ``httpx.MockTransport``."""

    def __init__(self):
        self.status_code = 200
        self.body: object = gemini_body(
            {"vendor": "ACME Corp", "date": "2024-03-15", "amount": "1,251.74 EUR",
             "type": "Invoice", "confidence": 0.93}
        )
        self.requests: list[httpx.Request] = []
        self.raise_error: Exception | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raise_error is not None:
            raise self.raise_error
        if isinstance(self.body, (bytes, str)):
            return httpx.Response(self.status_code, content=self.body)
        return httpx.Response(self.status_code, json=self.body)


@pytest.fixture(autouse=True)
def _reset_tables():
    Base.metadata.create_all(bind=_ENGINE)
    yield
    Base.metadata.drop_all(bind=_ENGINE)


@pytest.fixture()
def db():
    session = _Session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def blob_store(tmp_path):
    return LocalBlobStore(tmp_path / "blobs", secret_key="test-secret", base_url="http://testserver")


@pytest.fixture()
def fake_model():
    return FakeModel()


@pytest.fixture()
def extractor(blob_store, fake_model):
    http = httpx.AsyncClient(transport=httpx.MockTransport(fake_model.handler))
    return GeminiExtractionClient(blob_store, api_key="test-key", http_client=http)


@pytest.fixture()
def client(db, blob_store, extractor):
    def _override():
        try:
            yield db
        finally:
            pass

    CategoryRepository(db).seed_defaults()
    app.dependency_overrides[get_db] = _override
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    app.dependency_overrides[get_extractor] = lambda: extractor
    with TestClient(app, headers={"X-User-Id": OWNER}) as c:
        yield c
    app.dependency_overrides.clear()
