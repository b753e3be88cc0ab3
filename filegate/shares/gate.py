"""Password gate for galleries and public share links.

Per (id, attempt) the gate is Locked until a password check succeeds; the
success is handed to the client as a signed session grant. Every later
request re-checks that grant against the gallery as it is now, so a changed
password or a disabled/expired share locks existing sessions again.
"""

import hmac
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Tuple

from fastapi import Response

from filegate.config import get_settings
from filegate.errors import GalleryNotFound, InvalidPassword, ShareDisabled, ShareExpired
from filegate.records.models import GalleryRecord
from filegate.records.store import MetadataStore
from filegate.shares.grants import LookupBy, cookie_name, create_grant, grant_matches

log = logging.getLogger(__name__)


class AccessState(str, Enum):
    LOCKED = "locked"
    UNLOCKED = "unlocked"


@dataclass
class SessionGrant:
    """Cookie proving a successful password check for one id."""

    name: str
    value: str
    max_age: int
    secure: bool

    def apply(self, response: Response) -> None:
        response.set_cookie(
            self.name,
            self.value,
            max_age=self.max_age,
            path="/",
            httponly=True,
            secure=self.secure,
            samesite="strict",
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ShareGate:
    """Validates gallery/share passwords and checks session grants."""

    def __init__(self, store: MetadataStore, now: Callable[[], datetime] = _utcnow) -> None:
        self._store = store
        self._now = now

    async def _lookup(self, identifier: str, lookup_by: LookupBy) -> GalleryRecord:
        if lookup_by is LookupBy.SHARE_ID:
            gallery = await self._store.get_gallery_by_share_id(identifier)
        else:
            gallery = await self._store.get_gallery(identifier)
        if gallery is None:
            log.info("Gallery not found %s=%s", lookup_by.value, identifier)
            raise GalleryNotFound()
        if lookup_by is LookupBy.SHARE_ID:
            self._check_share_open(gallery)
        return gallery

    def _check_share_open(self, gallery: GalleryRecord) -> None:
        if not gallery.share_enabled:
            log.info("Share disabled share_id=%s", gallery.share_id)
            raise ShareDisabled()
        if gallery.share_expires_at is not None and gallery.share_expires_at < self._now():
            log.info("Share expired share_id=%s at=%s", gallery.share_id, gallery.share_expires_at)
            raise ShareExpired()

    @staticmethod
    def _expected_password(gallery: GalleryRecord, lookup_by: LookupBy) -> Optional[str]:
        return gallery.share_password if lookup_by is LookupBy.SHARE_ID else gallery.password

    async def validate(self, identifier: str, password: str, lookup_by: LookupBy) -> SessionGrant:
        """Check a password attempt. Returns the session grant on success, raises otherwise."""
        gallery = await self._lookup(identifier, lookup_by)
        expected = self._expected_password(gallery, lookup_by)
        if expected is None or not hmac.compare_digest(expected.encode("utf-8"), password.encode("utf-8")):
            log.warning("Invalid password %s=%s", lookup_by.value, identifier)
            raise InvalidPassword()
        settings = get_settings()
        log.info("Password accepted %s=%s", lookup_by.value, identifier)
        return SessionGrant(
            name=cookie_name(lookup_by, identifier),
            value=create_grant(lookup_by, identifier, password),
            max_age=settings.share_session_days * 24 * 60 * 60,
            secure=settings.is_production,
        )

    async def access(
        self, identifier: str, grant: Optional[str], lookup_by: LookupBy
    ) -> Tuple[GalleryRecord, AccessState]:
        """Gallery and whether the caller may see it. Galleries without a password are always unlocked."""
        gallery = await self._lookup(identifier, lookup_by)
        expected = self._expected_password(gallery, lookup_by)
        if not expected:
            return gallery, AccessState.UNLOCKED
        if grant_matches(grant, lookup_by, identifier, expected):
            return gallery, AccessState.UNLOCKED
        return gallery, AccessState.LOCKED
