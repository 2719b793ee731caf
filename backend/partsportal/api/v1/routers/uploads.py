# ============================================================================
# backend/partsportal/api/v1/routers/uploads.py
# ============================================================================
"""
Uploads Router.

Provides endpoints for:
- Submitting a part with its files (vendors)
- Listing the upload catalog with filters (managers: all, vendors: own)
- Reading one upload with its files
"""

import logging
from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status

from ....config import settings
from ....core.auth.authorization import Scope
from ....core.catalog.catalog_service import UploadFilters, UploadSummary, catalog_service
from ....core.database.models import Principal
from ....core.errors import AuthorizationError, NotFoundError, SubmissionValidationError
from ....core.ingestion.ingestion_service import IncomingFile, ingestion_service
from ....core.shared.database_service import database_service
from ....core.storage.minio_service import MinIOService
from ....dependencies import get_blob_store, get_scope, require_vendor
from ..models import (
    FileResponse,
    PartialUploadResponse,
    UploadCreatedResponse,
    UploadDetailResponse,
    UploadListResponse,
    UploadSummaryResponse,
)

logger = logging.getLogger("partsportal.api.uploads")

router = APIRouter(prefix="/uploads", tags=["uploads"])


def _summary_response(summary: UploadSummary) -> UploadSummaryResponse:
    return UploadSummaryResponse(
        id=summary.id,
        owner_id=summary.owner_id,
        owner_display_name=summary.owner_display_name,
        part_number=summary.part_number,
        part_name=summary.part_name,
        created_at=summary.created_at,
        status=summary.status.value,
        expected_file_count=summary.expected_file_count,
        file_count=summary.file_count,
    )


@router.post(
    "",
    response_model=UploadCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a part",
    description="Create an upload for a part number/name with one or more files.",
    responses={502: {"model": PartialUploadResponse}},
)
async def submit_upload(
    part_number: str = Form("", description="Part number, e.g. PART-001"),
    part_name: str = Form("", description="Part name, e.g. Engine Mount Bracket"),
    files: Optional[List[UploadFile]] = File(None, description="Part files"),
    principal: Principal = Depends(require_vendor),
    blob_store: MinIOService = Depends(get_blob_store),
) -> UploadCreatedResponse:
    """Submit a part with its files as the current vendor."""
    incoming = []
    for f in files or []:
        if f.size is not None and f.size > settings.max_file_size:
            raise SubmissionValidationError(
                f"{f.filename} is too large: {f.size} bytes (max {settings.max_file_size})"
            )
        data = await f.read()
        incoming.append(
            IncomingFile(
                name=f.filename or "",
                data=data,
                mime_type=f.content_type or "",
            )
        )

    upload_id = await ingestion_service.submit(
        blob_store=blob_store,
        owner_id=principal.id,
        part_number=part_number,
        part_name=part_name,
        files=incoming,
    )
    return UploadCreatedResponse(upload_id=upload_id, file_count=len(incoming))


@router.get(
    "",
    response_model=UploadListResponse,
    summary="List uploads",
    description="List uploads visible to the caller, newest first, with optional filters.",
)
async def list_uploads(
    owner_id: Optional[UUID] = Query(None, description="Vendor id (managers only; vendors always see their own)"),
    part_number: Optional[str] = Query(None, description="Case-insensitive part number substring"),
    date_from: Optional[date] = Query(None, description="First day included (YYYY-MM-DD)"),
    date_to: Optional[date] = Query(None, description="Last day included (YYYY-MM-DD)"),
    tz: Optional[str] = Query(None, description="IANA time zone for day boundaries"),
    limit: Optional[int] = Query(None, ge=1, le=settings.catalog_max_page_size, description="Maximum results"),
    offset: int = Query(0, ge=0, description="Number of results to skip"),
    scope: Scope = Depends(get_scope),
) -> UploadListResponse:
    filters = UploadFilters(
        owner_id=owner_id,
        part_number_contains=part_number,
        date_from=date_from,
        date_to=date_to,
        tz=tz,
    )
    page_size = catalog_service.resolve_page_size(limit)

    async with database_service.get_session() as session:
        summaries = await catalog_service.list_uploads(
            session, scope, filters, limit=page_size, offset=offset
        )
        total = await catalog_service.count_uploads(session, scope, filters)

    return UploadListResponse(
        items=[_summary_response(s) for s in summaries],
        total=total,
        limit=page_size,
        offset=offset,
    )


@router.get(
    "/{upload_id}",
    response_model=UploadDetailResponse,
    summary="Get upload",
    description="Get an upload with its files.",
)
async def get_upload(
    upload_id: UUID,
    scope: Scope = Depends(get_scope),
) -> UploadDetailResponse:
    async with database_service.get_session() as session:
        try:
            detail = await catalog_service.get_upload(session, scope, upload_id)
        except AuthorizationError as e:
            if settings.mask_forbidden_as_not_found:
                raise NotFoundError(f"Upload {upload_id} not found") from e
            raise

    summary = _summary_response(detail.summary)
    return UploadDetailResponse(
        **summary.model_dump(),
        files=[FileResponse.model_validate(f) for f in detail.files],
    )
