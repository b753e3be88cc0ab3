"""Gallery password routes and the password-gated gallery views."""

import logging
from typing import Annotated, Optional, Type, TypeVar

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from filegate.deps import get_resolver, get_share_gate
from filegate.errors import GatewayError
from filegate.files.delivery import file_metadata
from filegate.files.resolver import IdentifierResolver
from filegate.limiter import limiter
from filegate.records.models import GalleryPasswordRequest, GalleryRecord, SharePasswordRequest
from filegate.shares.gate import AccessState, ShareGate
from filegate.shares.grants import LookupBy, cookie_name

router = APIRouter(tags=["galleries"])
log = logging.getLogger(__name__)

Gate = Annotated[ShareGate, Depends(get_share_gate)]
Resolver = Annotated[IdentifierResolver, Depends(get_resolver)]

Body = TypeVar("Body", bound=BaseModel)

GALLERY_FIELDS_REQUIRED = "Galerie-ID und Passwort sind erforderlich"
SHARE_FIELDS_REQUIRED = "Share-ID und Passwort sind erforderlich"


async def _read_body(request: Request, model: Type[Body]) -> Optional[Body]:
    """Parse the JSON body into model; None if it is not JSON or has the wrong shape."""
    try:
        data = await request.json()
    except ValueError:
        log.info("Password body is not JSON path=%s", request.url.path)
        return None
    try:
        return model.model_validate(data)
    except ValidationError as e:
        log.info("Password body rejected path=%s: %d errors", request.url.path, e.error_count())
        return None


def _fields_required(message: str) -> JSONResponse:
    return JSONResponse({"valid": False, "message": message}, status_code=400)


async def _validate(gate: ShareGate, identifier: str, password: str, lookup_by: LookupBy) -> JSONResponse:
    try:
        grant = await gate.validate(identifier, password, lookup_by)
    except GatewayError as e:
        return JSONResponse({"valid": False, "message": e.message}, status_code=e.status_code)
    response = JSONResponse({"valid": True})
    grant.apply(response)
    return response


@router.post("/api/gallery/validate-password")
@limiter.limit("10/minute")
async def validate_gallery_password(request: Request, gate: Gate) -> JSONResponse:
    """Check the owner-view password of a gallery; sets the session cookie on success."""
    body = await _read_body(request, GalleryPasswordRequest)
    if body is None or not body.galleryId or not body.password:
        return _fields_required(GALLERY_FIELDS_REQUIRED)
    return await _validate(gate, body.galleryId, body.password, LookupBy.GALLERY_ID)


@router.post("/api/gallery/validate-share-password")
@limiter.limit("10/minute")
async def validate_share_password(request: Request, gate: Gate) -> JSONResponse:
    """Check the password of a public share link (also enforces enabled/expiry)."""
    body = await _read_body(request, SharePasswordRequest)
    if body is None or not body.shareId or not body.password:
        return _fields_required(SHARE_FIELDS_REQUIRED)
    return await _validate(gate, body.shareId, body.password, LookupBy.SHARE_ID)


def _share_projection(gallery: GalleryRecord) -> dict:
    """Public view of a gallery; the internal id is never part of it."""
    return {
        "shareId": gallery.share_id,
        "name": gallery.name,
        "passwordProtected": bool(gallery.share_password),
        "shareExpiresAt": gallery.share_expires_at.isoformat() if gallery.share_expires_at else None,
    }


def _gallery_projection(gallery: GalleryRecord) -> dict:
    return {
        "id": gallery.id,
        "name": gallery.name,
        "folderId": gallery.folder_id,
        "passwordProtected": bool(gallery.password),
    }


async def _gallery_view(
    request: Request,
    gate: ShareGate,
    resolver: IdentifierResolver,
    identifier: str,
    lookup_by: LookupBy,
) -> JSONResponse:
    grant: Optional[str] = request.cookies.get(cookie_name(lookup_by, identifier))
    gallery, state = await gate.access(identifier, grant, lookup_by)
    projection = _share_projection(gallery) if lookup_by is LookupBy.SHARE_ID else _gallery_projection(gallery)
    if state is AccessState.LOCKED:
        log.info("Gallery locked %s=%s", lookup_by.value, identifier)
        return JSONResponse({"locked": True, "gallery": projection}, status_code=401)
    files = await resolver.list_folder(gallery.folder_id)
    return JSONResponse({"locked": False, "gallery": projection, "files": [file_metadata(f) for f in files]})


@router.get("/s/{share_id:path}")
async def share_view(request: Request, share_id: str, gate: Gate, resolver: Resolver) -> JSONResponse:
    """Public share link: gallery and files once the share password (if any) was accepted."""
    return await _gallery_view(request, gate, resolver, share_id, LookupBy.SHARE_ID)


@router.get("/api/gallery/{gallery_id}")
async def gallery_view(request: Request, gallery_id: str, gate: Gate, resolver: Resolver) -> JSONResponse:
    """Owner view of a gallery, gated by the gallery password (if any)."""
    return await _gallery_view(request, gate, resolver, gallery_id, LookupBy.GALLERY_ID)
