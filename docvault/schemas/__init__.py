from docvault.schemas.base import (
    CANONICAL_TYPES,
    DEFAULT_TYPE,
    Category,
    CategoryCreate,
    DeleteResponse,
    Document,
    DocumentStats,
    DocumentUpdate,
    ExtractionResult,
    SignedUrlResponse,
    UploadRequest,
)

__all__ = [
    "CANONICAL_TYPES",
    "DEFAULT_TYPE",
    "Category",
    "CategoryCreate",
    "DeleteResponse",
    "Document",
    "DocumentStats",
    "DocumentUpdate",
    "ExtractionResult",
    "SignedUrlResponse",
    "UploadRequest",
]
