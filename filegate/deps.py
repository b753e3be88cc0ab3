"""FastAPI dependencies: store clients and the gateway components built on them.

Tests swap get_metadata_store / get_blob_store for in-memory fakes via
app.dependency_overrides.
"""

from typing import Annotated

from fastapi import Depends

from filegate.blobs.client import BlobStore, HttpFetcher
from filegate.blobs.storage import LocalBlobStore
from filegate.config import get_settings
from filegate.db.session import get_session
from filegate.files.delivery import DeliveryStrategySelector
from filegate.files.resolver import IdentifierResolver
from filegate.folders.settings import SharingSettingsService, get_settings_cache
from filegate.records.store import MetadataStore, SqlMetadataStore
from filegate.shares.gate import ShareGate
from filegate.uploads.ingress import UploadIngressGate


def get_metadata_store() -> MetadataStore:
    return SqlMetadataStore(get_session)


def get_blob_store() -> BlobStore:
    settings = get_settings()
    return LocalBlobStore(
        settings.storage_base_path,
        settings.public_base_url,
        HttpFetcher(timeout=settings.upstream_timeout_seconds),
    )


Store = Annotated[MetadataStore, Depends(get_metadata_store)]
Blobs = Annotated[BlobStore, Depends(get_blob_store)]


def get_resolver(store: Store) -> IdentifierResolver:
    return IdentifierResolver(store)


def get_delivery(blobs: Blobs) -> DeliveryStrategySelector:
    return DeliveryStrategySelector(blobs, user_agent=get_settings().proxy_user_agent)


def get_share_gate(store: Store) -> ShareGate:
    return ShareGate(store)


def get_upload_gate(store: Store, blobs: Blobs) -> UploadIngressGate:
    return UploadIngressGate(store, blobs, max_upload_bytes=get_settings().max_upload_bytes)


def get_sharing_settings(store: Store) -> SharingSettingsService:
    return SharingSettingsService(store, get_settings_cache())
