"""
Pydantic request/response models for API v1.

Responses are built from the core service dataclasses with ``from_attributes``.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class UploadCreatedResponse(BaseModel):
    """Result of a successful submission."""
    upload_id: UUID = Field(..., description="Id of the new upload")
    file_count: int = Field(..., description="Number of files stored")


class PartialUploadResponse(BaseModel):
    """Body returned when some files of a submission failed."""
    detail: str
    upload_id: UUID = Field(..., description="Upload that was created and left incomplete")
    expected: int = Field(..., description="Files in the submission")
    persisted: int = Field(..., description="Files that were stored anyway")
    failures: List[str] = Field(default_factory=list)


class UploadSummaryResponse(BaseModel):
    """One row of the upload catalog."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    owner_id: UUID
    owner_display_name: str = Field(..., description="Vendor organization name")
    part_number: str
    part_name: str
    created_at: datetime
    status: str = Field(..., description="pending, complete or incomplete")
    expected_file_count: int
    file_count: int


class UploadListResponse(BaseModel):
    items: List[UploadSummaryResponse]
    total: int = Field(..., description="Rows matching the filters, ignoring paging")
    limit: int
    offset: int


class FileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    file_name: str
    size_bytes: int
    mime_type: str
    created_at: datetime


class UploadDetailResponse(UploadSummaryResponse):
    files: List[FileResponse] = Field(default_factory=list)


class PrincipalResponse(BaseModel):
    """Current caller's profile."""
    id: UUID
    email: str
    display_name: str
    role: str
    organization_name: Optional[str] = None
    home: str = Field(..., description="Landing page for the caller's role")


class VendorOptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    organization_name: str


class ErrorResponse(BaseModel):
    """Standard error body for domain errors."""
    error: str = Field(..., description="Error category")
    detail: str = Field(..., description="Human-readable message")
