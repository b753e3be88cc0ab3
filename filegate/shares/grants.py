"""Session grants for gallery and share passwords (signed JWT cookies)."""

import hashlib
import hmac
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional
from urllib.parse import quote

from jose import JWTError, jwt

from filegate.config import get_settings


class LookupBy(str, Enum):
    """Which identifier a gate check uses; also the grant scope."""

    GALLERY_ID = "galleryId"
    SHARE_ID = "shareId"


_COOKIE_PREFIX = {
    LookupBy.GALLERY_ID: "gallery_password_",
    LookupBy.SHARE_ID: "share_password_",
}


def cookie_name(lookup_by: LookupBy, identifier: str) -> str:
    """Cookie name for an id. Share ids may contain slashes, so the id is percent-quoted."""
    return _COOKIE_PREFIX[lookup_by] + quote(identifier, safe="")


def password_digest(password: str) -> str:
    """Keyed hash of a password; the grant carries this, never the password."""
    settings = get_settings()
    return hmac.new(
        settings.session_secret.encode("utf-8"), password.encode("utf-8"), hashlib.sha256
    ).hexdigest()


def create_grant(lookup_by: LookupBy, identifier: str, password: str) -> str:
    """Signed grant for one gallery or share id, valid for share_session_days."""
    settings = get_settings()
    now = datetime.now(timezone.utc)
    to_encode: dict[str, Any] = {
        "sub": identifier,
        "scope": lookup_by.value,
        "pwd": password_digest(password),
        "iat": now,
        "exp": now + timedelta(days=settings.share_session_days),
    }
    return jwt.encode(to_encode, settings.session_secret, algorithm=settings.session_algorithm)


def decode_grant(token: str) -> Optional[dict[str, Any]]:
    """Decode and validate a grant; return payload or None."""
    settings = get_settings()
    try:
        return jwt.decode(token, settings.session_secret, algorithms=[settings.session_algorithm])
    except JWTError:
        return None


def grant_matches(token: Optional[str], lookup_by: LookupBy, identifier: str, password: str) -> bool:
    """True if token is an unexpired grant for this id and the password it was issued for is still current."""
    if not token:
        return False
    payload = decode_grant(token)
    if not payload:
        return False
    if payload.get("scope") != lookup_by.value or payload.get("sub") != identifier:
        return False
    return hmac.compare_digest(str(payload.get("pwd", "")), password_digest(password))
