"""Turn a resolved file record into a response: stream, redirect or metadata JSON."""

import logging
from enum import Enum
from typing import Dict, Optional
from urllib.parse import quote

from fastapi.responses import JSONResponse, RedirectResponse, Response, StreamingResponse
from starlette.background import BackgroundTask

from filegate.blobs.client import BlobStore, UpstreamResponse
from filegate.errors import NoDeliverableUrl, UpstreamFetchFailed
from filegate.records.models import FileRecord

log = logging.getLogger(__name__)

INLINE_CACHE_CONTROL = "public, max-age=86400, s-maxage=86400, stale-while-revalidate=604800"
REDIRECT_CACHE_CONTROL = "public, max-age=31536000"
PROXY_CACHE_CONTROL = "public, max-age=31536000, immutable"

# Upstream headers worth passing through on inline streams
_RELAYED_HEADERS = ("content-type", "etag", "last-modified")

_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

# Checked in order against the content type (substring match)
_EXTENSIONS = (
    ("image/jpeg", "jpg"),
    ("image/png", "png"),
    ("image/gif", "gif"),
    ("image/webp", "webp"),
    ("application/pdf", "pdf"),
    ("text/plain", "txt"),
    ("text/html", "html"),
    ("text/css", "css"),
    ("text/javascript", "js"),
    ("application/json", "json"),
    ("application/xml", "xml"),
    ("application/zip", "zip"),
)


class DeliveryMode(str, Enum):
    STREAM_INLINE = "stream-inline"
    STREAM_ATTACHMENT = "stream-attachment"
    REDIRECT = "redirect"
    METADATA = "metadata"


def encode_filename(name: str) -> str:
    """Percent-encode a filename for Content-Disposition (same set as encodeURIComponent)."""
    return quote(name, safe="-_.!~*'()")


def download_file_name(record: FileRecord) -> str:
    return record.original_name or record.name or "download"


def extension_for(content_type: str) -> str:
    """File extension for a content type; bin when unknown."""
    for needle, ext in _EXTENSIONS:
        if needle in content_type:
            return ext
    return "bin"


def file_metadata(record: FileRecord) -> Dict[str, object]:
    """Public JSON projection of a file record."""
    return {
        "id": record.id,
        "name": record.name,
        "originalName": record.original_name or record.name,
        "url": record.url,
        "type": record.type,
        "size": record.size,
        "createdAt": record.created_at.isoformat(),
        "uploadedViaApi": record.uploaded_via_api or False,
    }


async def _ensure_ok(upstream: UpstreamResponse, url: str, message: Optional[str] = None) -> None:
    if upstream.ok:
        return
    await upstream.aclose()
    log.warning("Upstream returned %d for %s", upstream.status_code, url)
    raise UpstreamFetchFailed(upstream.status_code, message)


class DeliveryStrategySelector:
    """Builds responses for file records and for the generic URL proxy."""

    def __init__(self, blobs: BlobStore, user_agent: str = "") -> None:
        self._blobs = blobs
        self._user_agent = user_agent

    async def deliver(self, record: FileRecord, mode: DeliveryMode) -> Response:
        if mode is DeliveryMode.STREAM_INLINE:
            return await self.stream_inline(record)
        if mode is DeliveryMode.STREAM_ATTACHMENT:
            return await self.stream_attachment(record)
        if mode is DeliveryMode.REDIRECT:
            return self.redirect(record)
        return self.metadata(record)

    async def stream_inline(self, record: FileRecord) -> StreamingResponse:
        """Pipe the blob through chunk by chunk; the upstream is closed when the client goes away."""
        if not record.url:
            raise NoDeliverableUrl()
        upstream = await self._blobs.fetch(record.url)
        await _ensure_ok(upstream, record.url, "Fehler beim Laden der Datei.")
        headers = {k: upstream.headers[k] for k in _RELAYED_HEADERS if k in upstream.headers}
        headers["Cache-Control"] = INLINE_CACHE_CONTROL
        headers["X-Robots-Tag"] = "noindex, nofollow"
        headers["Content-Disposition"] = f'inline; filename="{encode_filename(record.name)}"'

        async def body():
            try:
                async for chunk in upstream.iter_bytes():
                    yield chunk
            finally:
                await upstream.aclose()

        log.info("stream_inline file=%s folder=%s", record.id, record.folder_id)
        return StreamingResponse(body(), status_code=200, headers=headers, background=BackgroundTask(upstream.aclose))

    async def stream_attachment(self, record: FileRecord) -> Response:
        """Buffer the blob and send it as a download named after the original file name."""
        if not record.url:
            raise NoDeliverableUrl()
        upstream = await self._blobs.fetch(record.url)
        await _ensure_ok(upstream, record.url)
        content = await upstream.read()
        content_type = upstream.content_type or "application/octet-stream"
        log.info("stream_attachment file=%s folder=%s size=%d", record.id, record.folder_id, len(content))
        return Response(
            content=content,
            headers={
                "Content-Type": content_type,
                "Content-Disposition": f'attachment; filename="{encode_filename(download_file_name(record))}"',
                "Cache-Control": "no-cache",
            },
        )

    def redirect(self, record: FileRecord) -> RedirectResponse:
        target = record.storage_url or record.url
        if not target:
            log.error("No deliverable URL for file=%s folder=%s", record.id, record.folder_id)
            raise NoDeliverableUrl()
        headers = {"Cache-Control": REDIRECT_CACHE_CONTROL}
        if record.type:
            headers["Content-Type"] = record.type
        return RedirectResponse(target, status_code=302, headers=headers)

    def metadata(self, record: FileRecord) -> JSONResponse:
        return JSONResponse(file_metadata(record))

    async def _fetch_foreign(self, url: str, message: str) -> UpstreamResponse:
        upstream = await self._blobs.fetch(url, {"User-Agent": self._user_agent} if self._user_agent else None)
        await _ensure_ok(upstream, url, f"{message}: {upstream.status_code}")
        return upstream

    async def proxy_image(self, url: str) -> Response:
        """Relay an arbitrary image with permissive CORS headers."""
        upstream = await self._fetch_foreign(url, "Failed to fetch image")
        content = await upstream.read()
        content_type = upstream.content_type or "image/jpeg"
        subtype = content_type.split("/", 1)[1].split(";", 1)[0].strip() if "/" in content_type else "jpeg"
        return Response(
            content=content,
            headers={
                "Content-Type": content_type,
                "Cache-Control": PROXY_CACHE_CONTROL,
                **_CORS_HEADERS,
                "Content-Disposition": f'attachment; filename="{encode_filename("download." + subtype)}"',
            },
        )

    async def download_url(self, url: str, filename: Optional[str] = None) -> Response:
        """Relay an arbitrary URL as an attachment; filename gets an extension from the content type."""
        upstream = await self._fetch_foreign(url, "Failed to fetch file")
        content = await upstream.read()
        content_type = upstream.content_type or "application/octet-stream"
        safe_name = filename or "download"
        if "." not in safe_name:
            safe_name = f"{safe_name}.{extension_for(content_type)}"
        return Response(
            content=content,
            headers={
                "Content-Type": content_type,
                "Content-Disposition": f'attachment; filename="{encode_filename(safe_name)}"',
                "Cache-Control": "no-cache",
                **_CORS_HEADERS,
            },
        )
