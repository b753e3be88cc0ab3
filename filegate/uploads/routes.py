"""Programmatic upload route (API key in the query string, multipart field 'file')."""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile

from filegate.deps import get_upload_gate
from filegate.errors import GatewayError
from filegate.limiter import limiter
from filegate.uploads.ingress import UploadIngressGate, UploadPayload

router = APIRouter(prefix="/api", tags=["uploads"])
log = logging.getLogger(__name__)


async def _read_payload(request: Request) -> Optional[UploadPayload]:
    """The 'file' part of a multipart body, or None if there is none."""
    form = await request.form()
    part = form.get("file")
    if not isinstance(part, UploadFile):
        return None
    data = await part.read()
    return UploadPayload(data=data, filename=part.filename or "", content_type=part.content_type)


@router.post("/upload")
@limiter.limit("600/minute")
async def upload_file(
    request: Request,
    gate: Annotated[UploadIngressGate, Depends(get_upload_gate)],
    key: Optional[str] = None,
) -> JSONResponse:
    """Upload one file into the folder bound to the API key."""
    try:
        grant = await gate.authorize(key)
        payload = await _read_payload(request)
        record = await gate.store(grant, payload)
    except GatewayError as e:
        return JSONResponse({"error": e.message}, status_code=e.status_code)
    return JSONResponse(
        {"success": True, "fileId": record.id, "url": record.url, "name": record.name}
    )
