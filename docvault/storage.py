"""
Blob storage for raw uploads.

The pipeline only needs the ``BlobStore`` protocol; ``LocalBlobStore``
keeps objects on the filesystem and hands out HMAC-signed, expiring URLs
that ``/api/files`` verifies.
"""
from __future__ import annotations

import hashlib
import hmac
import logging
import time
from pathlib import Path
from typing import Optional, Protocol
from urllib.parse import quote, urlencode

from starlette.concurrency import run_in_threadpool

from docvault.errors import NotFoundError, StorageWriteError

logger = logging.getLogger(__name__)


def _write_new(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    # "x" refuses to overwrite an existing object
    with open(path, "xb") as fh:
        fh.write(data)


class BlobStore(Protocol):
    async def put(self, key: str, data: bytes, mime_type: str) -> str: ...

    async def get(self, key: str) -> bytes: ...

    async def delete(self, key: str) -> bool: ...

    def signed_url(self, key: str, ttl_seconds: int) -> str: ...


class LocalBlobStore:
    """Filesystem-backed blob store rooted at ``root``."""

    def __init__(self, root: str | Path, secret_key: str, base_url: str = ""):
        self.root = Path(root)
        self._secret = secret_key.encode("utf-8")
        self.base_url = base_url.rstrip("/")

    # ── paths ───────────────────────────────────────────────────────────
    def _path(self, key: str) -> Path:
        clean = key.lstrip("/")
        path = (self.root / clean).resolve()
        if not path.is_relative_to(self.root.resolve()) or not clean:
            raise NotFoundError(key)
        return path

    # ── BlobStore ───────────────────────────────────────────────────────
    async def put(self, key: str, data: bytes, mime_type: str) -> str:
        try:
            path = self._path(key)
        except NotFoundError as e:
            raise StorageWriteError(key, "invalid key") from e
        try:
            await run_in_threadpool(_write_new, path, data)
        except FileExistsError as e:
            raise StorageWriteError(key, "object already exists") from e
        except OSError as e:
            raise StorageWriteError(key, str(e)) from e
        logger.info("Stored %s (%d bytes, %s)", key, len(data), mime_type)
        return key

    async def get(self, key: str) -> bytes:
        path = self._path(key)
        try:
            return await run_in_threadpool(path.read_bytes)
        except FileNotFoundError as e:
            raise NotFoundError(key) from e

    async def delete(self, key: str) -> bool:
        """Remove ``key``. Returns False (and logs) instead of raising."""
        try:
            await run_in_threadpool(self._path(key).unlink)
        except (OSError, NotFoundError) as e:
            logger.warning("Could not delete %s from storage: %s", key, e)
            return False
        return True

    # ── signed URLs ─────────────────────────────────────────────────────
    def _signature(self, key: str, expires: int) -> str:
        msg = f"{key}:{expires}".encode("utf-8")
        return hmac.new(self._secret, msg, hashlib.sha256).hexdigest()

    def signed_url(self, key: str, ttl_seconds: int) -> str:
        expires = int(time.time()) + ttl_seconds
        query = urlencode({"expires": expires, "signature": self._signature(key, expires)})
        return f"{self.base_url}/api/files/{quote(key)}?{query}"

    def verify(self, key: str, expires: int, signature: str, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        if expires < now:
            return False
        return hmac.compare_digest(self._signature(key, expires), signature)
