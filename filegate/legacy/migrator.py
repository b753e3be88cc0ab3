"""Redirect deprecated URL shapes to canonical routes before routing happens."""

import logging
import re
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse

log = logging.getLogger(__name__)

LEGACY_SHARE_PREFIX = "/view/s/"

_DIRECT_FILE = re.compile(r"^/([a-zA-Z0-9_-]+)/([^/]+)$")

# Namespaces whose two-segment paths are real routes
_NOT_LEGACY = ("/api/", "/s/", "/docs/", "/blobs/")


def rewrite(path: str, direct_files: bool = True) -> Optional[str]:
    """Canonical path for a legacy path, or None when the path is already fine.

    /view/s/<shareId...> becomes /s/<shareId...> (the share id may contain slashes);
    /<folderId>/<fileName> outside /api/ and /s/ becomes /api/direct/<folderId>/<fileName>.
    """
    if path.startswith(LEGACY_SHARE_PREFIX):
        return "/s/" + path[len(LEGACY_SHARE_PREFIX):]
    if not direct_files or path.startswith(_NOT_LEGACY):
        return None
    match = _DIRECT_FILE.match(path)
    if match:
        return f"/api/direct/{match.group(1)}/{match.group(2)}"
    return None


class LegacyUrlMiddleware(BaseHTTPMiddleware):
    """Answers legacy paths with a temporary redirect; everything else passes through."""

    def __init__(self, app, direct_files: bool = True) -> None:
        super().__init__(app)
        self.direct_files = direct_files

    async def dispatch(self, request: Request, call_next):
        # raw_path keeps the percent-encoding of the incoming URL
        raw = request.scope.get("raw_path")
        path = raw.decode("latin-1").split("?", 1)[0] if raw else request.url.path
        target = rewrite(path, self.direct_files)
        if target is None:
            return await call_next(request)
        if request.url.query:
            target = f"{target}?{request.url.query}"
        log.info("Legacy URL %s -> %s", path, target)
        return RedirectResponse(target, status_code=307)
