"""
Signed blob downloads.

GET /api/files/{key}?expires=…&signature=…
"""
from __future__ import annotations

import mimetypes

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from docvault.dependencies import get_blob_store
from docvault.errors import NotFoundError
from docvault.storage import LocalBlobStore

router = APIRouter()


@router.get("/files/{key:path}")
async def download_file(
    key: str,
    expires: int = Query(...),
    signature: str = Query(...),
    blob_store: LocalBlobStore = Depends(get_blob_store),
):
    if not blob_store.verify(key, expires, signature):
        raise HTTPException(status_code=403, detail="Invalid or expired link")
    try:
        data = await blob_store.get(key)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="File not found")
    media_type = mimetypes.guess_type(key)[0] or "application/octet-stream"
    return Response(content=data, media_type=media_type)
