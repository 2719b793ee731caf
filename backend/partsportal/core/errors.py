"""
Domain exceptions raised by the ingestion, catalog and retrieval services.

The HTTP layer maps each class to a status code in one exception handler
(see partsportal.main); services never raise HTTPException themselves.
"""

from typing import List, Optional
from uuid import UUID


class PortalError(Exception):
    """Base class for all domain errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class SubmissionValidationError(PortalError):
    """Submission rejected before any write (empty field, no files, oversize file)."""


class PartialIngestionFailure(PortalError):
    """
    One or more per-file writes failed during a submission.

    The Upload row and every FileAsset/blob written by sibling branches stay
    persisted; ``persisted`` tells how many files made it.
    """

    def __init__(
        self,
        upload_id: UUID,
        expected: int,
        persisted: int,
        failures: List[str],
    ):
        super().__init__(
            f"Upload {upload_id} failed: {len(failures)} of {expected} files could not be stored"
        )
        self.upload_id = upload_id
        self.expected = expected
        self.persisted = persisted
        self.failures = failures


class AuthorizationError(PortalError):
    """Caller's scope does not cover the requested upload, file or operation."""


class NotFoundError(PortalError):
    """Referenced principal, upload or file does not exist."""


class StorageUnavailableError(PortalError):
    """Blob store or catalog store call failed or timed out."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class InvalidFilterError(PortalError):
    """Catalog query parameters that cannot be applied (bad time zone, bad page size)."""
