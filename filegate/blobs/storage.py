"""Local blob store: objects on disk under a base dir (no directory traversal)."""

import logging
import mimetypes
import unicodedata
from pathlib import Path
from typing import Mapping, Optional
from urllib.parse import quote, unquote

from filegate.blobs.client import HttpFetcher, UpstreamResponse
from filegate.errors import BlobExists, BlobWriteFailed

log = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


def _is_safe_path_char(c: str) -> bool:
    """True if char is allowed in a path segment: anything but separators and control chars."""
    if len(c) != 1:
        return False
    if c in "/\\":
        return False
    # Cc covers NUL, the C0 range and DEL
    return unicodedata.category(c) != "Cc"


def _sanitize_segment(segment: str) -> Optional[str]:
    """Return segment if safe, else None. Rejects blank, '..', '.', separators and control chars.
    Symbols and emoji are fine ("price$5.png", "smile😀.png"); client filenames are stored as given.
    """
    if not segment.strip() or segment in (".", ".."):
        return None
    if not all(_is_safe_path_char(c) for c in segment):
        return None
    return segment


def resolve_blob_path(base: Path, relative_path: str) -> Path:
    """
    Resolve a relative blob path under base. Rejects traversal and unsafe names.
    relative_path uses forward slashes; segments are sanitized.
    """
    parts = relative_path.replace("\\", "/").strip("/").split("/")
    resolved = base
    for part in parts:
        if not part:
            continue
        safe = _sanitize_segment(part)
        if not safe:
            raise ValueError(f"Unsafe path segment: {part!r}")
        resolved = resolved / safe
    if resolved == base:
        raise ValueError("Empty blob path")
    return resolved


async def _empty():
    for chunk in ():
        yield chunk


def _file_chunks(fh, size: int = _CHUNK_SIZE):
    async def chunks():
        while True:
            chunk = fh.read(size)
            if not chunk:
                break
            yield chunk

    return chunks()


class LocalBlobStore:
    """BlobStore on the local filesystem.

    URLs look like <public_base_url>/blobs/<path>. Fetching one of our own URLs
    reads from disk; any other URL goes through the HTTP fetcher.
    """

    def __init__(self, base_path: Path, public_base_url: str, fetcher: Optional[HttpFetcher] = None) -> None:
        self._base = base_path
        self._prefix = public_base_url.rstrip("/") + "/blobs/"
        self._fetcher = fetcher or HttpFetcher()

    def url_for(self, path: str) -> str:
        """Fetchable URL for a blob path."""
        return self._prefix + quote(path.strip("/"))

    def path_for_url(self, url: str) -> Optional[str]:
        """Blob path for one of our URLs, or None for a foreign URL."""
        if not url.startswith(self._prefix):
            return None
        return unquote(url[len(self._prefix):].split("?", 1)[0])

    def locate(self, path: str) -> Path:
        """Filesystem path of a blob. Raises ValueError for unsafe paths."""
        return resolve_blob_path(self._base, path)

    async def put(self, path: str, data: bytes, content_type: Optional[str]) -> str:
        """Create the object at path. Raises BlobExists if the path is taken."""
        try:
            target = self.locate(path)
            target.parent.mkdir(parents=True, exist_ok=True)
            # "xb": the path is claimed atomically, a concurrent writer gets FileExistsError
            with target.open("xb") as fh:
                fh.write(data)
        except FileExistsError as e:
            log.info("Blob path taken path=%r", path)
            raise BlobExists() from e
        except (ValueError, OSError) as e:
            log.error("Blob write failed path=%r: %s", path, e)
            raise BlobWriteFailed() from e
        log.info("Blob written path=%s size=%d type=%s", path, len(data), content_type)
        return self.url_for(path)

    async def fetch(self, url: str, headers: Optional[Mapping[str, str]] = None) -> UpstreamResponse:
        path = self.path_for_url(url)
        if path is None:
            return await self._fetcher.fetch(url, headers)
        try:
            target = self.locate(path)
        except ValueError:
            log.warning("Blob fetch rejected path=%r", path)
            return UpstreamResponse(400, {}, _empty())
        if not target.is_file():
            log.warning("Blob missing on disk path=%s", path)
            return UpstreamResponse(404, {}, _empty())
        content_type = mimetypes.guess_type(target.name)[0] or "application/octet-stream"
        fh = target.open("rb")

        async def close() -> None:
            fh.close()

        return UpstreamResponse(
            200,
            {"Content-Type": content_type, "Content-Length": str(target.stat().st_size)},
            _file_chunks(fh),
            close=close,
        )
