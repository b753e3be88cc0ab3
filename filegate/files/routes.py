"""File read routes: direct redirect, download, inline stream, metadata, folder listing, proxy."""

import logging
from typing import Annotated, Optional
from urllib.parse import quote, unquote

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse, Response

from filegate.deps import get_delivery, get_resolver
from filegate.errors import (
    FileNotFound,
    FolderNotFound,
    GatewayError,
    MissingIdentifiers,
    UpstreamFetchFailed,
)
from filegate.files.delivery import DeliveryMode, DeliveryStrategySelector, file_metadata
from filegate.files.resolver import IdentifierResolver, match_record

router = APIRouter(tags=["files"])
# Bare /<folderId>/<fileName>; included last so it never shadows other routes
inline_router = APIRouter(tags=["files"])
log = logging.getLogger(__name__)

Resolver = Annotated[IdentifierResolver, Depends(get_resolver)]
Delivery = Annotated[DeliveryStrategySelector, Depends(get_delivery)]


def _text_error(exc: GatewayError, relay_upstream: bool = False) -> PlainTextResponse:
    """Plain-text error body; optionally relay the upstream status instead of our own."""
    status_code = exc.status_code
    if relay_upstream and isinstance(exc, UpstreamFetchFailed):
        status_code = exc.upstream_status
    return PlainTextResponse(exc.message, status_code=status_code)


def _raw_name(request: Request, file_name: str) -> str:
    """Last path segment as sent, still percent-encoded.

    Path params arrive decoded; decoding them again would turn a file literally
    named "100%25.png" into "100%.png". Resolution decodes the raw segment once.
    """
    raw_path = request.scope.get("raw_path")
    if raw_path:
        return raw_path.decode("latin-1").split("?", 1)[0].rsplit("/", 1)[-1]
    return quote(file_name, safe="")


@router.get("/api/direct/{folder_id}/{file_name}")
async def direct_file(request: Request, folder_id: str, file_name: str, resolver: Resolver, delivery: Delivery) -> Response:
    """Redirect to the blob URL of a file matched by name, original name or storage name."""
    try:
        record = await resolver.resolve(folder_id, _raw_name(request, file_name))
        if record is None:
            log.warning("direct_file not found folder=%s name=%r", folder_id, file_name)
            raise FileNotFound()
        return await delivery.deliver(record, DeliveryMode.REDIRECT)
    except GatewayError as e:
        return _text_error(e)


@router.get("/api/download/{folder_id}/{file_name}")
async def download_file(request: Request, folder_id: str, file_name: str, resolver: Resolver, delivery: Delivery) -> Response:
    """Download a file as an attachment named after its original name."""
    try:
        if not folder_id.strip() or not file_name.strip():
            raise MissingIdentifiers()
        name = unquote(_raw_name(request, file_name))
        log.info("download_file folder=%s name=%r", folder_id, name)
        records = await resolver.list_folder(folder_id)
        if not records:
            raise FolderNotFound()
        record = match_record(records, name)
        if record is None:
            raise FileNotFound()
        return await delivery.deliver(record, DeliveryMode.STREAM_ATTACHMENT)
    except GatewayError as e:
        return _text_error(e, relay_upstream=True)


async def _inline(folder_id: str, file_name: str, resolver: IdentifierResolver, delivery: DeliveryStrategySelector) -> Response:
    try:
        record = await resolver.resolve_exact(folder_id, file_name)
        if record is None:
            return PlainTextResponse("Datei nicht gefunden.", status_code=404)
        return await delivery.deliver(record, DeliveryMode.STREAM_INLINE)
    except GatewayError as e:
        log.error("inline delivery failed folder=%s name=%r: %s", folder_id, file_name, e.message)
        return PlainTextResponse(e.message, status_code=500)


@router.get("/api/inline/{folder_id}/{file_name}")
async def inline_file(folder_id: str, file_name: str, resolver: Resolver, delivery: Delivery) -> Response:
    """Stream a file inline by its literal filename."""
    return await _inline(folder_id, file_name, resolver, delivery)


@inline_router.get("/{folder_id}/{file_name}")
async def legacy_inline_file(folder_id: str, file_name: str, resolver: Resolver, delivery: Delivery) -> Response:
    """Inline stream at the bare path (reachable when legacy redirects are switched off)."""
    return await _inline(folder_id, file_name, resolver, delivery)


@router.get("/api/files/{folder_id}")
async def list_folder_files(folder_id: str, resolver: Resolver, order: str = "asc") -> dict:
    """All files in a folder; an empty folder is an empty list, not a 404."""
    records = await resolver.list_folder(folder_id, descending=order.lower() == "desc")
    log.info("list_folder_files folder=%s count=%d", folder_id, len(records))
    return {"files": [file_metadata(r) for r in records]}


@router.get("/api/files/{folder_id}/{file_name}")
async def file_info(request: Request, folder_id: str, file_name: str, resolver: Resolver, delivery: Delivery) -> Response:
    """Metadata JSON for one file. Errors go through the JSON error handler."""
    record = await resolver.resolve(folder_id, _raw_name(request, file_name))
    if record is None:
        raise FileNotFound()
    return await delivery.deliver(record, DeliveryMode.METADATA)


@router.get("/api/proxy-image")
async def proxy_image(delivery: Delivery, url: Optional[str] = None) -> Response:
    """Relay an external image with CORS headers."""
    if not url:
        return PlainTextResponse("URL parameter is required", status_code=400)
    log.info("proxy_image url=%s", url)
    try:
        return await delivery.proxy_image(url)
    except GatewayError as e:
        return _text_error(e, relay_upstream=True)


@router.get("/api/download")
async def download_url(delivery: Delivery, url: Optional[str] = None, filename: Optional[str] = None) -> Response:
    """Relay an external URL as a download."""
    if not url:
        return PlainTextResponse("URL parameter is required", status_code=400)
    log.info("download_url url=%s filename=%r", url, filename)
    try:
        return await delivery.download_url(url, filename)
    except GatewayError as e:
        return _text_error(e, relay_upstream=True)
