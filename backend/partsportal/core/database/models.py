# backend/partsportal/core/database/models.py
"""
SQLAlchemy ORM models for the parts catalog.

Models:
    - Principal: Vendor or manager identity mirrored from the identity provider
    - Upload: One vendor submission (part number/name plus its files)
    - FileAsset: One uploaded file's metadata, pointing at its blob store key

All models use UUID primary keys. Timestamps are naive UTC.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    TypeDecorator,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import relationship

from .base import Base


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns below."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# UUID type that works with both SQLite and PostgreSQL
class UUID(TypeDecorator):
    """Platform-independent UUID type.

    Uses PostgreSQL's UUID type when available, otherwise uses String(36).
    """
    impl = String
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(PG_UUID(as_uuid=True))
        else:
            return dialect.type_descriptor(String(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if not isinstance(value, uuid.UUID):
            return uuid.UUID(value)
        return value


class Role(str, enum.Enum):
    """Closed set of principal roles."""
    vendor = "vendor"
    manager = "manager"


class UploadStatus(str, enum.Enum):
    """
    Ingestion intent state of an upload.

    pending: row inserted, file fan-out not finished
    complete: every expected file persisted
    incomplete: at least one file failed; siblings may remain
    """
    pending = "pending"
    complete = "complete"
    incomplete = "incomplete"


class Principal(Base):
    """
    Authenticated identity (vendor or manager).

    Rows are created by the identity bootstrap (see commands.seed); the
    catalog services only read them.

    Attributes:
        id: Identity provider subject id
        email: Login email (unique)
        display_name: Person's name
        role: vendor or manager
        organization_name: Vendor company name (required for vendors)
        created_at: When the principal was mirrored into the catalog
    """

    __tablename__ = "principals"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True, index=True)
    display_name = Column(String(255), nullable=False)
    role = Column(Enum(Role, name="principal_role", native_enum=False, length=20), nullable=False, index=True)
    organization_name = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    uploads = relationship("Upload", back_populates="owner")

    __table_args__ = (
        CheckConstraint(
            "role != 'vendor' OR organization_name IS NOT NULL",
            name="ck_principals_vendor_org",
        ),
    )

    @property
    def owner_label(self) -> str:
        """Name shown next to this principal's uploads."""
        return self.organization_name or self.display_name

    def __repr__(self) -> str:
        return f"<Principal(id={self.id}, role={self.role}, email={self.email})>"


class Upload(Base):
    """
    One submission event by a vendor.

    Attributes:
        id: Generated upload identifier
        owner_id: Vendor principal that submitted it (immutable)
        part_number: Free-text part identifier
        part_name: Free-text part label
        status: Ingestion intent state (see UploadStatus)
        expected_file_count: Number of files the submission announced
        created_at: Server-assigned submission time, default sort key

    Relationships:
        owner: Submitting principal
        files: FileAssets owned by this upload (deleted with it)
    """

    __tablename__ = "uploads"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    owner_id = Column(
        UUID(), ForeignKey("principals.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    part_number = Column(String(255), nullable=False)
    part_name = Column(String(255), nullable=False)
    status = Column(
        Enum(UploadStatus, name="upload_status", native_enum=False, length=20),
        nullable=False,
        default=UploadStatus.pending,
        index=True,
    )
    expected_file_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    owner = relationship("Principal", back_populates="uploads")
    files = relationship(
        "FileAsset",
        back_populates="upload",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_uploads_owner_created", "owner_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Upload(id={self.id}, part_number={self.part_number}, status={self.status})>"


class FileAsset(Base):
    """
    One uploaded file.

    Attributes:
        id: Generated file identifier
        upload_id: Parent upload
        file_name: Original name as supplied by the vendor
        storage_key: Blob store key ({upload_id}/{stamp}_{name}), globally unique
        size_bytes: Content length
        mime_type: Declared content type (may be empty)
        created_at: When the metadata row was written
    """

    __tablename__ = "files"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    upload_id = Column(
        UUID(), ForeignKey("uploads.id", ondelete="CASCADE"), nullable=False, index=True
    )
    file_name = Column(String(500), nullable=False)
    storage_key = Column(String(1024), nullable=False, unique=True)
    size_bytes = Column(BigInteger, nullable=False, default=0)
    mime_type = Column(String(255), nullable=False, default="")
    created_at = Column(DateTime, default=utcnow, nullable=False)

    upload = relationship("Upload", back_populates="files")

    __table_args__ = (
        CheckConstraint("size_bytes >= 0", name="ck_files_size_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<FileAsset(id={self.id}, file_name={self.file_name}, size={self.size_bytes})>"
