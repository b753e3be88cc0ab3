"""Folder sharing-button settings."""

import logging
from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Body, Depends

from filegate.deps import get_sharing_settings, get_upload_gate
from filegate.errors import InvalidApiKey
from filegate.folders.settings import SharingSettingsService
from filegate.uploads.ingress import UploadIngressGate

router = APIRouter(prefix="/api/folders", tags=["folders"])
log = logging.getLogger(__name__)

Service = Annotated[SharingSettingsService, Depends(get_sharing_settings)]


@router.get("/{folder_id}/sharing-settings")
async def get_sharing_settings(folder_id: str, service: Service) -> Dict[str, Any]:
    """Sharing-button settings for a folder (defaults when unset)."""
    return await service.load(folder_id)


@router.put("/{folder_id}/sharing-settings")
async def put_sharing_settings(
    folder_id: str,
    service: Service,
    gate: Annotated[UploadIngressGate, Depends(get_upload_gate)],
    updates: Annotated[Dict[str, Any], Body()],
    key: Optional[str] = None,
) -> Dict[str, Any]:
    """Update settings; the API key must belong to this folder."""
    grant = await gate.authorize(key)
    if grant.folder_id != folder_id:
        log.warning("API key for folder=%s used on folder=%s", grant.folder_id, folder_id)
        raise InvalidApiKey()
    return await service.save(folder_id, updates)
