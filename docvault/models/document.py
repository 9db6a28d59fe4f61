"""
SQLAlchemy models for documents and the category set.
"""
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Float, String, Text

from docvault.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentModel(Base):
    """One uploaded receipt / invoice / contract."""
    __tablename__ = "documents"

    id = Column(String, primary_key=True)
    owner_id = Column(String, nullable=False, index=True)
    storage_key = Column(String, nullable=False, unique=True)
    vendor = Column(String, nullable=False)
    date = Column(String(10))  # YYYY-MM-DD
    amount = Column(String)  # decimal text, never ""
    type = Column(String, nullable=False, default="Other")
    reminder_date = Column(String(10))
    confidence = Column(Float, nullable=False, default=0.0)
    extraction_failed = Column(Boolean, nullable=False, default=False)
    extraction_error = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class CategoryModel(Base):
    """Admin-managed document type. Documents refer to it by name only."""
    __tablename__ = "document_types"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
