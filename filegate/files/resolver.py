"""Resolve (folderId, file name) pairs to file records.

Matching is deterministic: records are scanned in creation order and the
fields are tried in a fixed priority. storage_name goes first because it is
unique within a folder; original_name and name may repeat.
"""

import logging
from typing import Iterable, List, Optional
from urllib.parse import unquote

from filegate.records.models import FileRecord
from filegate.records.store import MetadataStore

log = logging.getLogger(__name__)

MATCH_FIELDS = ("storage_name", "original_name", "name")


def _creation_order(record: FileRecord):
    return (record.created_at, record.id or "")


def match_record(records: Iterable[FileRecord], name: str) -> Optional[FileRecord]:
    """First record (creation order) whose highest-priority field equals name, or None."""
    ordered = sorted(records, key=_creation_order)
    for field in MATCH_FIELDS:
        for record in ordered:
            if getattr(record, field) == name:
                return record
    return None


class IdentifierResolver:
    """Finds file records in a folder. None means not found; StoreError means the store failed."""

    def __init__(self, store: MetadataStore) -> None:
        self._store = store

    async def list_folder(self, folder_id: str, descending: bool = False) -> List[FileRecord]:
        """All records in the folder ordered by created_at."""
        records = await self._store.list_files(folder_id)
        return sorted(records, key=_creation_order, reverse=descending)

    async def resolve(self, folder_id: str, raw_name: str) -> Optional[FileRecord]:
        """Percent-decode raw_name and match it against every record in the folder."""
        name = unquote(raw_name)
        records = await self._store.list_files(folder_id)
        if not records:
            log.info("resolve: folder=%s has no files", folder_id)
            return None
        found = match_record(records, name)
        if found is None:
            log.info("resolve: no match folder=%s name=%r (%d candidates)", folder_id, name, len(records))
        return found

    async def resolve_exact(self, folder_id: str, file_name: str) -> Optional[FileRecord]:
        """Point lookup by the literal filename: storage name first, then display name."""
        found = await self._store.get_file_by_storage_name(folder_id, file_name)
        if found is None:
            found = await self._store.get_file_by_name(folder_id, file_name)
        if found is None:
            log.info("resolve_exact: no match folder=%s name=%r", folder_id, file_name)
        return found
