# backend/partsportal/core/catalog/catalog_service.py
"""
Catalog query engine.

Lists uploads with their owner's display name and file count, applies the
compound filters of the manager dashboard and the vendor's "my uploads"
page, and loads a single upload with its files.

All filters are AND-combined and optional:
    - owner_id: exact match, replaced by the scope's owner for vendors
    - part_number_contains: case-insensitive substring of part_number
    - date_from / date_to: calendar days in the caller's time zone,
      date_from from start of day, date_to through end of day (inclusive)

Ordering is newest first (created_at desc), ties broken by id ascending.

Usage:
    from partsportal.core.catalog.catalog_service import catalog_service, UploadFilters

    summaries = await catalog_service.list_uploads(
        session, scope, UploadFilters(part_number_contains="p-1")
    )
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from partsportal.config import settings
from partsportal.core.auth.authorization import (
    Scope,
    effective_owner_filter,
    ensure_owner_visible,
    ensure_role,
)
from partsportal.core.database.models import FileAsset, Principal, Role, Upload, UploadStatus
from partsportal.core.errors import InvalidFilterError, NotFoundError, StorageUnavailableError

logger = logging.getLogger("partsportal.catalog")


@dataclass
class UploadFilters:
    """Optional, AND-combined list filters."""
    owner_id: Optional[UUID] = None
    part_number_contains: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    tz: Optional[str] = None


@dataclass
class UploadSummary:
    """One row of the upload catalog."""
    id: UUID
    owner_id: UUID
    owner_display_name: str
    part_number: str
    part_name: str
    created_at: datetime
    status: UploadStatus
    expected_file_count: int
    file_count: int


@dataclass
class FileSummary:
    id: UUID
    file_name: str
    size_bytes: int
    mime_type: str
    created_at: datetime


@dataclass
class UploadDetail:
    """An upload with its files, ordered by file name."""
    summary: UploadSummary
    files: List[FileSummary] = field(default_factory=list)


@dataclass
class VendorOption:
    id: UUID
    organization_name: str


def _zone(tz: Optional[str]) -> ZoneInfo:
    name = tz or settings.catalog_timezone
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidFilterError(f"Unknown time zone: {name}") from e


def day_start_utc(day: date, tz: Optional[str] = None) -> datetime:
    """Start of ``day`` in the reference zone, as naive UTC (the column format)."""
    local = datetime.combine(day, time.min, tzinfo=_zone(tz))
    return local.astimezone(timezone.utc).replace(tzinfo=None)


def owner_label(organization_name: Optional[str], display_name: str) -> str:
    return organization_name or display_name


class CatalogService:
    """Read side of the catalog. Every call takes the caller's scope."""

    def resolve_page_size(self, limit: Optional[int]) -> int:
        if limit is None:
            return min(settings.catalog_default_page_size, settings.catalog_max_page_size)
        if limit < 1:
            raise InvalidFilterError("limit must be at least 1")
        return min(limit, settings.catalog_max_page_size)

    def _conditions(self, scope: Scope, filters: UploadFilters) -> list:
        conditions = []

        owner_id = effective_owner_filter(scope, filters.owner_id)
        if owner_id is not None:
            conditions.append(Upload.owner_id == owner_id)

        needle = (filters.part_number_contains or "").strip()
        if needle:
            conditions.append(
                func.lower(Upload.part_number).contains(needle.lower(), autoescape=True)
            )

        if filters.date_from is not None:
            conditions.append(Upload.created_at >= day_start_utc(filters.date_from, filters.tz))

        if filters.date_to is not None:
            next_day = filters.date_to + timedelta(days=1)
            conditions.append(Upload.created_at < day_start_utc(next_day, filters.tz))

        return conditions

    def _summary_query(self):
        file_counts = (
            select(
                FileAsset.upload_id.label("upload_id"),
                func.count(FileAsset.id).label("file_count"),
            )
            .group_by(FileAsset.upload_id)
            .subquery()
        )
        query = (
            select(
                Upload,
                Principal.organization_name,
                Principal.display_name,
                func.coalesce(file_counts.c.file_count, 0).label("file_count"),
            )
            .join(Principal, Principal.id == Upload.owner_id)
            .outerjoin(file_counts, file_counts.c.upload_id == Upload.id)
        )
        return query

    async def _execute(self, session: AsyncSession, query, what: str):
        try:
            return await session.execute(query)
        except SQLAlchemyError as e:
            logger.error(f"Catalog read failed ({what}): {e}")
            raise StorageUnavailableError(f"Catalog store unavailable, could not {what}", cause=e) from e

    @staticmethod
    def _to_summary(upload: Upload, organization_name, display_name, file_count) -> UploadSummary:
        return UploadSummary(
            id=upload.id,
            owner_id=upload.owner_id,
            owner_display_name=owner_label(organization_name, display_name),
            part_number=upload.part_number,
            part_name=upload.part_name,
            created_at=upload.created_at,
            status=UploadStatus(upload.status),
            expected_file_count=upload.expected_file_count,
            file_count=int(file_count or 0),
        )

    async def list_uploads(
        self,
        session: AsyncSession,
        scope: Scope,
        filters: Optional[UploadFilters] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[UploadSummary]:
        """
        List uploads visible to ``scope`` that match ``filters``.

        Args:
            session: Database session
            scope: Caller scope (vendors only ever see their own uploads)
            filters: Optional filters, empty means the whole scoped catalog
            limit: Page size, defaults to catalog_default_page_size, capped at catalog_max_page_size
            offset: Rows to skip

        Returns:
            Summaries, newest first
        """
        filters = filters or UploadFilters()
        if offset < 0:
            raise InvalidFilterError("offset must not be negative")
        page_size = self.resolve_page_size(limit)

        query = (
            self._summary_query()
            .where(*self._conditions(scope, filters))
            .order_by(Upload.created_at.desc(), Upload.id.asc())
            .limit(page_size)
            .offset(offset)
        )
        result = await self._execute(session, query, "list uploads")
        summaries = [self._to_summary(*row) for row in result.all()]

        logger.debug(
            f"Listed {len(summaries)} uploads for {scope.role.value} {scope.principal_id} "
            f"(filters={filters}, limit={page_size}, offset={offset})"
        )
        return summaries

    async def count_uploads(
        self,
        session: AsyncSession,
        scope: Scope,
        filters: Optional[UploadFilters] = None,
    ) -> int:
        """Number of uploads ``list_uploads`` would return without paging."""
        filters = filters or UploadFilters()
        result = await self._execute(
            session,
            select(func.count(Upload.id)).where(*self._conditions(scope, filters)),
            "count uploads",
        )
        return result.scalar() or 0

    async def get_upload(self, session: AsyncSession, scope: Scope, upload_id: UUID) -> UploadDetail:
        """
        Load one upload with its files.

        Raises:
            NotFoundError: Upload does not exist
            AuthorizationError: Upload belongs to another vendor
            StorageUnavailableError: Catalog store read failed
        """
        result = await self._execute(
            session, self._summary_query().where(Upload.id == upload_id), f"load upload {upload_id}"
        )
        row = result.first()
        if row is None:
            raise NotFoundError(f"Upload {upload_id} not found")

        summary = self._to_summary(*row)
        ensure_owner_visible(scope, summary.owner_id, target=f"upload {upload_id}")

        files_result = await self._execute(
            session,
            select(FileAsset)
            .where(FileAsset.upload_id == upload_id)
            .order_by(FileAsset.file_name.asc(), FileAsset.id.asc()),
            f"load files of upload {upload_id}",
        )
        files = [
            FileSummary(
                id=f.id,
                file_name=f.file_name,
                size_bytes=f.size_bytes,
                mime_type=f.mime_type,
                created_at=f.created_at,
            )
            for f in files_result.scalars().all()
        ]
        return UploadDetail(summary=summary, files=files)

    async def list_vendors(self, session: AsyncSession, scope: Scope) -> List[VendorOption]:
        """
        Vendors for the manager dashboard's owner filter.

        Raises:
            AuthorizationError: Caller is not a manager
        """
        ensure_role(scope, Role.manager, "list vendors")
        result = await self._execute(
            session,
            select(Principal)
            .where(Principal.role == Role.vendor)
            .order_by(Principal.organization_name.asc(), Principal.id.asc()),
            "list vendors",
        )
        return [
            VendorOption(id=p.id, organization_name=p.owner_label)
            for p in result.scalars().all()
        ]


catalog_service = CatalogService()
