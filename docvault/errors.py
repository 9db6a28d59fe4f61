"""
Error taxonomy for the upload / extraction pipeline.

Only ``StorageWriteError`` and ``PersistenceError`` escape the pipeline.
``ExtractionError`` subclasses are absorbed by the fallback policy.
"""
from __future__ import annotations

from typing import Optional


class DocVaultError(Exception):
    """Base class for every error raised by docvault."""


class UnsupportedMediaTypeError(DocVaultError):
    pass


class StorageWriteError(DocVaultError):
    """The raw upload could not be written to blob storage."""

    def __init__(self, key: str, reason: str):
        super().__init__(f"Storage write failed for {key}: {reason}")
        self.key = key
        self.reason = reason


class NotFoundError(DocVaultError):
    """A blob (or record) does not exist."""

    def __init__(self, key: str):
        super().__init__(f"Not found: {key}")
        self.key = key


class ExtractionError(DocVaultError):
    """Recoverable failure of the external extraction call."""


class ExtractionTransportError(ExtractionError):
    """Network failure or non-success status from the model provider."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class ExtractionParseError(ExtractionError):
    """Model response was not a JSON object after fence stripping."""

    def __init__(self, message: str, raw_text: Optional[str] = None):
        super().__init__(message)
        self.raw_text = raw_text


class PersistenceError(DocVaultError):
    """The document record was rejected by the database.

    ``storage_key`` names the blob that was already uploaded and is now
    orphaned.
    """

    def __init__(self, message: str, storage_key: Optional[str] = None):
        super().__init__(message)
        self.storage_key = storage_key


class CategoryExistsError(DocVaultError):
    """A category with this name is already in the set."""

    def __init__(self, name: str):
        super().__init__(f"Category already exists: {name}")
        self.name = name
