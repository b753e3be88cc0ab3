"""Tests for the TTL cache and folder sharing settings."""

import pytest

from fakes import InMemoryMetadataStore
from filegate.errors import FolderNotFound
from filegate.folders.cache import TTLCache
from filegate.folders.settings import DEFAULT_SHARING_SETTINGS, SharingSettingsService


class _Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_ttl_cache_expires() -> None:
    """Entries are served until the TTL has passed."""
    clock = _Clock()
    cache = TTLCache(300, clock=clock)
    cache.put("f1", {"a": 1})
    clock.now += 299
    assert cache.get("f1") == {"a": 1}
    clock.now += 1
    assert cache.get("f1") is None


def test_ttl_cache_invalidate() -> None:
    cache = TTLCache(300)
    cache.put("a", 1)
    cache.put("b", 2)
    cache.invalidate("a")
    assert cache.get("a") is None
    assert cache.get("b") == 2
    cache.invalidate()
    assert cache.get("b") is None


@pytest.fixture
def store():
    s = InMemoryMetadataStore()
    s.folders["f1"] = {"instagramEnabled": False}
    s.folders["bare"] = None
    return s


@pytest.fixture
def clock():
    return _Clock()


@pytest.fixture
def service(store, clock):
    return SharingSettingsService(store, TTLCache(300, clock=clock))


@pytest.mark.asyncio
async def test_load_merges_defaults(service) -> None:
    settings = await service.load("f1")
    assert settings["instagramEnabled"] is False
    assert settings["facebookEnabled"] is True
    assert settings["controlBarPosition"] == "attached"


@pytest.mark.asyncio
async def test_load_folder_without_settings_gets_defaults(service) -> None:
    assert await service.load("bare") == DEFAULT_SHARING_SETTINGS


@pytest.mark.asyncio
async def test_load_unknown_folder_gets_defaults_uncached(service, store) -> None:
    assert await service.load("nope") == DEFAULT_SHARING_SETTINGS
    await service.load("nope")
    assert store.settings_reads == 2


@pytest.mark.asyncio
async def test_load_is_cached_until_ttl(service, store, clock) -> None:
    """Within the TTL the store is read once; afterwards it is read again."""
    await service.load("f1")
    await service.load("f1")
    assert store.settings_reads == 1
    clock.now += 300
    await service.load("f1")
    assert store.settings_reads == 2


@pytest.mark.asyncio
async def test_cached_value_not_mutated_by_callers(service) -> None:
    settings = await service.load("f1")
    settings["instagramEnabled"] = True
    assert (await service.load("f1"))["instagramEnabled"] is False


@pytest.mark.asyncio
async def test_save_writes_through_and_ignores_unknown_keys(service, store) -> None:
    saved = await service.save("f1", {"twitterEnabled": False, "bogus": 1})
    assert saved["twitterEnabled"] is False
    assert "bogus" not in saved
    assert store.folders["f1"]["twitterEnabled"] is False
    assert (await service.load("f1"))["twitterEnabled"] is False


@pytest.mark.asyncio
async def test_save_unknown_folder(service) -> None:
    with pytest.raises(FolderNotFound):
        await service.save("nope", {"twitterEnabled": False})
