"""Sharing-button settings per folder, cached for a few minutes."""

import logging
from typing import Any, Dict, Optional

from filegate.config import get_settings
from filegate.folders.cache import TTLCache
from filegate.records.store import MetadataStore

log = logging.getLogger(__name__)

DEFAULT_SHARING_SETTINGS: Dict[str, Any] = {
    "instagramEnabled": True,
    "facebookEnabled": True,
    "twitterEnabled": True,
    "whatsappEnabled": True,
    "customButtonEnabled": False,
    "customButtonLabel": "",
    "customButtonUrl": "",
    "showDownloadButton": True,
    "showCopyLinkButton": False,
    "controlBarPosition": "attached",
}

_cache: Optional[TTLCache[Dict[str, Any]]] = None


def get_settings_cache() -> TTLCache[Dict[str, Any]]:
    """The process-wide folderId -> settings cache."""
    global _cache
    if _cache is None:
        _cache = TTLCache(get_settings().settings_cache_ttl_seconds)
    return _cache


class SharingSettingsService:
    """Loads and saves folder sharing settings through a TTL cache."""

    def __init__(self, store: MetadataStore, cache: TTLCache[Dict[str, Any]]) -> None:
        self._store = store
        self._cache = cache

    async def load(self, folder_id: str) -> Dict[str, Any]:
        """Settings merged over the defaults. Unknown folders get the defaults (not cached)."""
        if not folder_id:
            return dict(DEFAULT_SHARING_SETTINGS)
        cached = self._cache.get(folder_id)
        if cached is not None:
            log.debug("sharing settings cache hit folder=%s", folder_id)
            return dict(cached)
        stored = await self._store.get_folder_settings(folder_id)
        if stored is None:
            log.info("sharing settings: unknown folder=%s, using defaults", folder_id)
            return dict(DEFAULT_SHARING_SETTINGS)
        settings = {**DEFAULT_SHARING_SETTINGS, **stored}
        self._cache.put(folder_id, settings)
        return dict(settings)

    async def save(self, folder_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        """Write known keys through to the store and refresh the cache."""
        current = await self.load(folder_id)
        merged = {**current, **{k: v for k, v in updates.items() if k in DEFAULT_SHARING_SETTINGS}}
        self._cache.invalidate(folder_id)
        await self._store.save_folder_settings(folder_id, merged)
        self._cache.put(folder_id, merged)
        log.info("sharing settings saved folder=%s", folder_id)
        return dict(merged)
