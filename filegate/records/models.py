"""Metadata tables (SQLAlchemy) and the record schemas the gateway works with (Pydantic)."""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from sqlalchemy import JSON, BigInteger, Boolean, DateTime, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from filegate.db.session import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class FileRow(Base):
    """One stored object. storage_name is unique within a folder."""

    __tablename__ = "files"
    __table_args__ = (UniqueConstraint("folder_id", "storage_name", name="uq_files_folder_storage_name"),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    folder_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(1024), nullable=False)
    original_name: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    storage_name: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    storage_path: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    storage_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    size: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    uploaded_via_api: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class GalleryRow(Base):
    """Shareable collection over a folder. share_id is the only public identifier."""

    __tablename__ = "galleries"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    folder_id: Mapped[str] = mapped_column(String(255), nullable=False)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    password: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    share_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    # Galleries created before share links existed count as enabled
    share_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    share_password: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    share_expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class ApiKeyRow(Base):
    """Upload credential bound to exactly one user and folder."""

    __tablename__ = "api_keys"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    folder_id: Mapped[str] = mapped_column(String(255), nullable=False)
    valid: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    description: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    last_used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class FolderRow(Base):
    """Folder with its sharing-button settings (JSON document)."""

    __tablename__ = "folders"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    social_media_settings: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)


# Records handed between components
class FileRecord(BaseModel):
    """A stored object as the resolver and delivery strategies see it."""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    folder_id: str
    user_id: str
    name: str
    original_name: Optional[str] = None
    storage_name: Optional[str] = None
    storage_path: Optional[str] = None
    url: Optional[str] = None
    storage_url: Optional[str] = None
    type: Optional[str] = None
    size: int = 0
    created_at: datetime
    uploaded_via_api: bool = False

    @field_validator("created_at")
    @classmethod
    def _created_at_utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class GalleryRecord(BaseModel):
    """Gallery as read from the store (read-only to the gateway)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    folder_id: str
    user_id: str
    name: str
    password: Optional[str] = None
    share_id: str
    share_enabled: bool = True
    share_password: Optional[str] = None
    share_expires_at: Optional[datetime] = None

    @field_validator("share_expires_at")
    @classmethod
    def _expires_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)


class ApiKeyRecord(BaseModel):
    """API key; valid only when flagged valid and bound to a user and folder."""

    model_config = ConfigDict(from_attributes=True)

    key: str
    user_id: Optional[str] = None
    folder_id: Optional[str] = None
    valid: bool = True


# Request bodies
class GalleryPasswordRequest(BaseModel):
    """Body of POST /api/gallery/validate-password."""

    galleryId: Optional[str] = None
    password: Optional[str] = None


class SharePasswordRequest(BaseModel):
    """Body of POST /api/gallery/validate-share-password."""

    shareId: Optional[str] = None
    password: Optional[str] = None
