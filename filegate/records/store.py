"""Metadata store interface and its SQLAlchemy implementation."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from filegate.db.session import SessionScope
from filegate.errors import FolderNotFound, StoreError
from filegate.records.models import (
    ApiKeyRecord,
    ApiKeyRow,
    FileRecord,
    FileRow,
    FolderRow,
    GalleryRecord,
    GalleryRow,
)

log = logging.getLogger(__name__)


class MetadataStore(Protocol):
    """Key-value/document store holding files, galleries, API keys and folder settings.

    Lookups return None when nothing matches; StoreError means the store itself failed.
    """

    async def list_files(self, folder_id: str) -> List[FileRecord]: ...

    async def get_file_by_storage_name(self, folder_id: str, storage_name: str) -> Optional[FileRecord]: ...

    async def get_file_by_name(self, folder_id: str, name: str) -> Optional[FileRecord]: ...

    async def add_file(self, record: FileRecord) -> FileRecord: ...

    async def get_gallery(self, gallery_id: str) -> Optional[GalleryRecord]: ...

    async def get_gallery_by_share_id(self, share_id: str) -> Optional[GalleryRecord]: ...

    async def get_api_key(self, key: str) -> Optional[ApiKeyRecord]: ...

    async def touch_api_key(self, key: str, when: datetime) -> None: ...

    async def get_folder_settings(self, folder_id: str) -> Optional[Dict[str, Any]]: ...

    async def save_folder_settings(self, folder_id: str, settings: Dict[str, Any]) -> None: ...


class SqlMetadataStore:
    """MetadataStore on SQLAlchemy async sessions. Every call uses its own session."""

    def __init__(self, session_scope: SessionScope) -> None:
        self._session = session_scope

    async def list_files(self, folder_id: str) -> List[FileRecord]:
        try:
            async with self._session() as session:
                result = await session.execute(select(FileRow).where(FileRow.folder_id == folder_id))
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            log.error("list_files failed folder=%s: %s", folder_id, e)
            raise StoreError() from e
        return [FileRecord.model_validate(r) for r in rows]

    async def _first_file(self, *conditions) -> Optional[FileRecord]:
        try:
            async with self._session() as session:
                result = await session.execute(
                    select(FileRow).where(*conditions).order_by(FileRow.created_at, FileRow.id).limit(1)
                )
                row = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            log.error("file lookup failed: %s", e)
            raise StoreError() from e
        return FileRecord.model_validate(row) if row else None

    async def get_file_by_storage_name(self, folder_id: str, storage_name: str) -> Optional[FileRecord]:
        return await self._first_file(FileRow.folder_id == folder_id, FileRow.storage_name == storage_name)

    async def get_file_by_name(self, folder_id: str, name: str) -> Optional[FileRecord]:
        return await self._first_file(FileRow.folder_id == folder_id, FileRow.name == name)

    async def add_file(self, record: FileRecord) -> FileRecord:
        """Insert a file record and return it with its store-assigned id.

        A second record with the same storage_name in the folder violates the
        unique constraint and surfaces as StoreError.
        """
        data = record.model_dump(exclude={"id"})
        try:
            async with self._session() as session:
                row = FileRow(**data)
                session.add(row)
                await session.flush()
                stored = FileRecord.model_validate(row)
        except SQLAlchemyError as e:
            log.error("add_file failed folder=%s storage_name=%s: %s", record.folder_id, record.storage_name, e)
            raise StoreError() from e
        return stored

    async def get_gallery(self, gallery_id: str) -> Optional[GalleryRecord]:
        try:
            async with self._session() as session:
                row = await session.get(GalleryRow, gallery_id)
        except SQLAlchemyError as e:
            log.error("get_gallery failed id=%s: %s", gallery_id, e)
            raise StoreError() from e
        return GalleryRecord.model_validate(row) if row else None

    async def get_gallery_by_share_id(self, share_id: str) -> Optional[GalleryRecord]:
        try:
            async with self._session() as session:
                result = await session.execute(select(GalleryRow).where(GalleryRow.share_id == share_id))
                row = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            log.error("get_gallery_by_share_id failed share_id=%s: %s", share_id, e)
            raise StoreError() from e
        return GalleryRecord.model_validate(row) if row else None

    async def get_api_key(self, key: str) -> Optional[ApiKeyRecord]:
        try:
            async with self._session() as session:
                row = await session.get(ApiKeyRow, key)
        except SQLAlchemyError as e:
            log.error("get_api_key failed: %s", e)
            raise StoreError() from e
        return ApiKeyRecord.model_validate(row) if row else None

    async def touch_api_key(self, key: str, when: datetime) -> None:
        try:
            async with self._session() as session:
                row = await session.get(ApiKeyRow, key)
                if row:
                    row.last_used_at = when
        except SQLAlchemyError as e:
            raise StoreError() from e

    async def get_folder_settings(self, folder_id: str) -> Optional[Dict[str, Any]]:
        """Stored sharing settings; {} for a known folder without settings, None for an unknown folder."""
        try:
            async with self._session() as session:
                row = await session.get(FolderRow, folder_id)
        except SQLAlchemyError as e:
            log.error("get_folder_settings failed folder=%s: %s", folder_id, e)
            raise StoreError() from e
        if row is None:
            return None
        return dict(row.social_media_settings or {})

    async def save_folder_settings(self, folder_id: str, settings: Dict[str, Any]) -> None:
        try:
            async with self._session() as session:
                row = await session.get(FolderRow, folder_id)
                if row is None:
                    raise FolderNotFound()
                row.social_media_settings = dict(settings)
        except SQLAlchemyError as e:
            log.error("save_folder_settings failed folder=%s: %s", folder_id, e)
            raise StoreError() from e
