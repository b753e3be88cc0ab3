"""Tests for the gallery/share password gate."""

from datetime import datetime, timedelta, timezone

import pytest

from fakes import InMemoryMetadataStore
from filegate.errors import GalleryNotFound, InvalidPassword, ShareDisabled, ShareExpired
from filegate.records.models import GalleryRecord
from filegate.shares.gate import AccessState, ShareGate
from filegate.shares.grants import LookupBy

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _gallery(**kwargs) -> GalleryRecord:
    values = {
        "id": "g1",
        "folder_id": "f1",
        "user_id": "u1",
        "name": "Summer",
        "password": "owner-pw",
        "share_id": "abc/def",
        "share_password": "share-pw",
    }
    values.update(kwargs)
    return GalleryRecord(**values)


@pytest.fixture
def store():
    s = InMemoryMetadataStore()
    s.galleries["g1"] = _gallery()
    return s


@pytest.fixture
def gate(store):
    return ShareGate(store, now=lambda: NOW)


@pytest.mark.asyncio
async def test_validate_share_password_sets_cookie_for_share_id(gate) -> None:
    """Valid share password yields a grant named after the (quoted) share id."""
    grant = await gate.validate("abc/def", "share-pw", LookupBy.SHARE_ID)
    assert grant.name == "share_password_abc%2Fdef"
    assert grant.max_age == 7 * 24 * 60 * 60
    assert grant.value


@pytest.mark.asyncio
async def test_validate_gallery_password_uses_owner_password(gate) -> None:
    grant = await gate.validate("g1", "owner-pw", LookupBy.GALLERY_ID)
    assert grant.name == "gallery_password_g1"
    with pytest.raises(InvalidPassword):
        await gate.validate("g1", "share-pw", LookupBy.GALLERY_ID)


@pytest.mark.asyncio
async def test_validate_wrong_password(gate) -> None:
    with pytest.raises(InvalidPassword):
        await gate.validate("abc/def", "nope", LookupBy.SHARE_ID)


@pytest.mark.asyncio
async def test_validate_unknown_gallery(gate) -> None:
    with pytest.raises(GalleryNotFound):
        await gate.validate("missing", "pw", LookupBy.SHARE_ID)
    with pytest.raises(GalleryNotFound):
        await gate.validate("missing", "pw", LookupBy.GALLERY_ID)


@pytest.mark.asyncio
async def test_disabled_share_rejected_even_with_correct_password(store, gate) -> None:
    store.galleries["g1"] = _gallery(share_enabled=False)
    with pytest.raises(ShareDisabled):
        await gate.validate("abc/def", "share-pw", LookupBy.SHARE_ID)


@pytest.mark.asyncio
async def test_expired_share_rejected(store, gate) -> None:
    store.galleries["g1"] = _gallery(share_expires_at=NOW - timedelta(minutes=1))
    with pytest.raises(ShareExpired):
        await gate.validate("abc/def", "share-pw", LookupBy.SHARE_ID)


@pytest.mark.asyncio
async def test_not_yet_expired_share_accepted(store, gate) -> None:
    store.galleries["g1"] = _gallery(share_expires_at=NOW + timedelta(days=1))
    grant = await gate.validate("abc/def", "share-pw", LookupBy.SHARE_ID)
    assert grant.value


@pytest.mark.asyncio
async def test_access_without_password_is_unlocked(store, gate) -> None:
    store.galleries["g1"] = _gallery(share_password=None)
    gallery, state = await gate.access("abc/def", None, LookupBy.SHARE_ID)
    assert gallery.id == "g1"
    assert state is AccessState.UNLOCKED


@pytest.mark.asyncio
async def test_access_with_grant_unlocks(gate) -> None:
    _, state = await gate.access("abc/def", None, LookupBy.SHARE_ID)
    assert state is AccessState.LOCKED
    grant = await gate.validate("abc/def", "share-pw", LookupBy.SHARE_ID)
    _, state = await gate.access("abc/def", grant.value, LookupBy.SHARE_ID)
    assert state is AccessState.UNLOCKED


@pytest.mark.asyncio
async def test_grant_not_valid_for_other_scope(gate) -> None:
    """A share grant does not open the owner view of the same gallery."""
    grant = await gate.validate("abc/def", "share-pw", LookupBy.SHARE_ID)
    _, state = await gate.access("g1", grant.value, LookupBy.GALLERY_ID)
    assert state is AccessState.LOCKED


@pytest.mark.asyncio
async def test_password_change_locks_existing_grant(store, gate) -> None:
    """Grants are re-checked against the current password."""
    grant = await gate.validate("abc/def", "share-pw", LookupBy.SHARE_ID)
    store.galleries["g1"] = _gallery(share_password="rotated")
    _, state = await gate.access("abc/def", grant.value, LookupBy.SHARE_ID)
    assert state is AccessState.LOCKED


@pytest.mark.asyncio
async def test_disabling_share_revokes_access(store, gate) -> None:
    grant = await gate.validate("abc/def", "share-pw", LookupBy.SHARE_ID)
    store.galleries["g1"] = _gallery(share_enabled=False)
    with pytest.raises(ShareDisabled):
        await gate.access("abc/def", grant.value, LookupBy.SHARE_ID)
