"""
Canonical pydantic v2 models shared by the pipeline and the HTTP layer.
"""
from __future__ import annotations

import math
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

CANONICAL_TYPES: tuple[str, ...] = ("Invoice", "Receipt", "Contract", "Other")
DEFAULT_TYPE = "Other"


# ---------------------------------------------------------------------------
# Pipeline values
# ---------------------------------------------------------------------------

class UploadRequest(BaseModel):
    """Raw upload as received from a client; discarded after the pipeline."""
    owner_id: str
    content: bytes
    mime_type: str


class ExtractionResult(BaseModel):
    """Fields attempted by the extraction model (or synthesized by fallback)."""
    vendor: Optional[str] = None
    date: Optional[str] = Field(None, description="YYYY-MM-DD")
    amount: Optional[str] = Field(None, description="decimal text")
    type: str = DEFAULT_TYPE
    confidence: float = 0.0
    extraction_failed: bool = False
    error_message: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: dict) -> "ExtractionResult":
        """Build a raw result from decoded model JSON without judging it.

        Scalars are stringified so the sanitizer sees one shape; anything
        that is not a number for ``confidence`` becomes 0.
        """
        def _text(value) -> Optional[str]:
            if value is None or isinstance(value, (dict, list)):
                return None
            return str(value)

        raw_confidence = payload.get("confidence")
        try:
            confidence = 0.0 if isinstance(raw_confidence, bool) else float(raw_confidence)
        except (TypeError, ValueError, OverflowError):
            confidence = 0.0
        if not math.isfinite(confidence):
            confidence = 0.0

        return cls(
            vendor=_text(payload.get("vendor")),
            date=_text(payload.get("date")),
            amount=_text(payload.get("amount")),
            type=_text(payload.get("type")) or DEFAULT_TYPE,
            confidence=confidence,
        )


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

class Document(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_id: str
    storage_key: str
    vendor: str
    date: Optional[str] = None
    amount: Optional[str] = None
    type: str = DEFAULT_TYPE
    display_type: Optional[str] = None
    reminder_date: Optional[str] = None
    confidence: float = 0.0
    extraction_failed: bool = False
    extraction_error: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    def with_display_type(self, category_names: set[str]) -> "Document":
        """Copy with ``display_type`` resolved against the current category set."""
        shown = self.type if self.type in category_names else DEFAULT_TYPE
        return self.model_copy(update={"display_type": shown})


class DocumentUpdate(BaseModel):
    """Partial edit. Empty strings on optional fields mean "clear"."""
    vendor: Optional[str] = None
    date: Optional[str] = None
    amount: Optional[str] = None
    type: Optional[str] = None
    reminder_date: Optional[str] = None

    @field_validator("vendor")
    @classmethod
    def _vendor(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("vendor must not be empty")
        return v

    @field_validator("amount")
    @classmethod
    def _amount(cls, v: Optional[str]) -> Optional[str]:
        from docvault.pipeline.sanitizer import normalize_amount

        if v is None or not v.strip():
            return None
        normalized = normalize_amount(v)
        if normalized is None:
            raise ValueError("amount must be a non-negative number")
        return normalized

    @field_validator("date", "reminder_date")
    @classmethod
    def _dates(cls, v: Optional[str]) -> Optional[str]:
        from docvault.pipeline.sanitizer import normalize_date

        if v is None or not v.strip():
            return None
        normalized = normalize_date(v)
        if normalized is None:
            raise ValueError("date must be formatted YYYY-MM-DD")
        return normalized

    @field_validator("type")
    @classmethod
    def _type(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("type must not be empty")
        return v


class DocumentStats(BaseModel):
    total: int = 0
    with_amount: int = 0
    needs_review: int = 0


class DeleteResponse(BaseModel):
    message: str
    document_id: str
    warnings: list[str] = Field(default_factory=list)


class SignedUrlResponse(BaseModel):
    url: str
    expires_in: int


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

class Category(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=64)

    @field_validator("name")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be empty")
        return v
