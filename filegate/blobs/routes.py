"""Serve objects of the local blob store so their URLs are fetchable."""

import logging
import mimetypes

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import FileResponse

from filegate.blobs.storage import resolve_blob_path
from filegate.config import get_settings

router = APIRouter(prefix="/blobs", tags=["blobs"])
log = logging.getLogger(__name__)


@router.get("/{path:path}")
async def get_blob(path: str) -> FileResponse:
    """Return a stored object by its blob path."""
    settings = get_settings()
    try:
        target = resolve_blob_path(settings.storage_base_path, path)
    except ValueError as e:
        log.warning("get_blob rejected path=%r: %s", path, e)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not target.exists() or not target.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Blob not found")
    return FileResponse(
        path=target,
        media_type=mimetypes.guess_type(target.name)[0] or "application/octet-stream",
    )
