"""API-key uploads: validate the key, write the blob, then write the metadata record.

The two writes are not atomic. An upload is tracked as a saga
(PENDING -> BLOB_WRITTEN -> METADATA_WRITTEN); a failure in the second phase
leaves a blob without a record, which is logged with its path so a sweep can
complete or discard it.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import PurePosixPath
from typing import Callable, Optional

from filegate.blobs.client import BlobStore
from filegate.errors import (
    BlobExists,
    BlobWriteFailed,
    InvalidApiKey,
    MetadataWriteFailed,
    MissingApiKey,
    NoFilePayload,
    PayloadTooLarge,
    StoreError,
)
from filegate.records.models import ApiKeyRecord, FileRecord
from filegate.records.store import MetadataStore

log = logging.getLogger(__name__)

# Stamps tried before an upload gives up on finding a free storage name
_MAX_NAME_ATTEMPTS = 1000


class UploadState(str, Enum):
    PENDING = "pending"
    BLOB_WRITTEN = "blob_written"
    METADATA_WRITTEN = "metadata_written"


@dataclass
class UploadPayload:
    """File part of an upload request."""

    data: bytes
    filename: str
    content_type: Optional[str] = None


@dataclass
class UploadSaga:
    """Progress of one upload through its two writes."""

    storage_name: str
    storage_path: str
    state: UploadState = UploadState.PENDING
    url: Optional[str] = None
    record: Optional[FileRecord] = None


def display_name(filename: str) -> str:
    """Client filename without any directory part."""
    return PurePosixPath(filename.replace("\\", "/")).name.strip()


def storage_path_for(user_id: str, folder_id: str, storage_name: str) -> str:
    return f"users/{user_id}/{folder_id}/{storage_name}"


class UploadIngressGate:
    """Validates API keys and performs the two-phase write."""

    def __init__(
        self,
        store: MetadataStore,
        blobs: BlobStore,
        max_upload_bytes: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._blobs = blobs
        self._max_upload_bytes = max_upload_bytes
        self._clock = clock

    async def authorize(self, api_key: Optional[str]) -> ApiKeyRecord:
        """Resolve an API key to its user and folder. A key is fully valid or rejected."""
        if not api_key:
            raise MissingApiKey()
        record = await self._store.get_api_key(api_key)
        if record is None or not record.valid or not record.user_id or not record.folder_id:
            log.warning("Rejected API key (unknown, revoked or unbound)")
            raise InvalidApiKey()
        try:
            await self._store.touch_api_key(api_key, datetime.now(timezone.utc))
        except StoreError as e:
            log.warning("Could not record API key use user=%s: %s", record.user_id, e)
        return record

    async def _free_stamp(self, folder_id: str, filename: str, stamp: int) -> int:
        """First stamp >= stamp whose <stamp>_<filename> no record in the folder owns."""
        while await self._store.get_file_by_storage_name(folder_id, f"{stamp}_{filename}") is not None:
            stamp += 1
        return stamp

    async def _claim_blob(self, grant: ApiKeyRecord, filename: str, payload: UploadPayload) -> UploadSaga:
        """Phase 1: write the object under a storage name nobody else holds.

        Another upload may pass the metadata check with the same name before
        either record exists; the exclusive blob write decides, and the loser
        moves on to the next stamp.
        """
        stamp = int(self._clock() * 1000)
        for _ in range(_MAX_NAME_ATTEMPTS):
            stamp = await self._free_stamp(grant.folder_id, filename, stamp)
            storage_name = f"{stamp}_{filename}"
            saga = UploadSaga(
                storage_name=storage_name,
                storage_path=storage_path_for(grant.user_id, grant.folder_id, storage_name),
            )
            try:
                saga.url = await self._blobs.put(saga.storage_path, payload.data, payload.content_type)
            except BlobExists:
                log.info("Storage name taken concurrently folder=%s name=%s", grant.folder_id, storage_name)
                stamp += 1
                continue
            saga.state = UploadState.BLOB_WRITTEN
            return saga
        log.error("No free storage name folder=%s filename=%s", grant.folder_id, filename)
        raise BlobWriteFailed()

    async def store(self, grant: ApiKeyRecord, payload: Optional[UploadPayload]) -> FileRecord:
        """Write blob then metadata for an authorized key."""
        if payload is None:
            raise NoFilePayload()
        filename = display_name(payload.filename or "")
        if not filename:
            raise NoFilePayload()
        size = len(payload.data)
        if self._max_upload_bytes is not None and size > self._max_upload_bytes:
            log.warning("Upload too large user=%s size=%d limit=%d", grant.user_id, size, self._max_upload_bytes)
            raise PayloadTooLarge()

        # Phase 1: object write. BlobWriteFailed propagates; nothing to clean up.
        saga = await self._claim_blob(grant, filename, payload)
        storage_name = saga.storage_name

        # Phase 2: metadata write.
        record = FileRecord(
            folder_id=grant.folder_id,
            user_id=grant.user_id,
            name=filename,
            original_name=filename,
            storage_name=storage_name,
            storage_path=saga.storage_path,
            url=saga.url,
            type=payload.content_type,
            size=size,
            created_at=datetime.now(timezone.utc),
            uploaded_via_api=True,
        )
        try:
            saga.record = await self._store.add_file(record)
        except StoreError as e:
            log.error(
                "Orphaned blob: metadata write failed path=%s url=%s user=%s folder=%s",
                saga.storage_path,
                saga.url,
                grant.user_id,
                grant.folder_id,
            )
            raise MetadataWriteFailed(saga) from e
        saga.state = UploadState.METADATA_WRITTEN
        log.info(
            "upload user=%s folder=%s name=%s storage_name=%s size=%d",
            grant.user_id,
            grant.folder_id,
            filename,
            storage_name,
            size,
        )
        return saga.record

    async def upload(self, api_key: Optional[str], payload: Optional[UploadPayload]) -> FileRecord:
        """Full ingress: key check, payload check, blob write, metadata write."""
        grant = await self.authorize(api_key)
        return await self.store(grant, payload)
