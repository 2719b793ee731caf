# backend/partsportal/core/ingestion/ingestion_service.py
"""
Ingestion workflow: one Upload plus its FileAssets as a single logical operation.

Flow:
    1. Validate input and the owner (must be a vendor).
    2. Insert the Upload row (status=pending, expected_file_count=N) and commit,
       so the FK target exists before any file references it.
    3. Fan out one branch per file, concurrently: write bytes to the blob store
       under ``{upload_id}/{stamp}_{file_name}``, then insert the FileAsset row
       in the branch's own session.
    4. Join. Mark the Upload complete, or incomplete if any branch failed.

Failure semantics:
    Any failed branch fails the whole submission (PartialIngestionFailure), but
    rows and blobs already written by sibling branches are NOT rolled back.
    The Upload stays behind with status=incomplete so the reconcile_uploads
    command can finish or purge it. There is no retry and no resume: calling
    submit again always creates a new Upload.

    A blob write that hits blob_write_timeout is abandoned, not cancelled: the
    put keeps running in its worker thread and may still land, leaving a blob
    with no FileAsset row. ``reconcile_uploads --purge`` deletes by the
    ``{upload_id}/`` key prefix, so such blobs are removed with the upload.

Usage:
    from partsportal.core.ingestion.ingestion_service import ingestion_service, IncomingFile

    upload_id = await ingestion_service.submit(
        blob_store=minio,
        owner_id=principal.id,
        part_number="P-100",
        part_name="Bracket",
        files=[IncomingFile(name="drawing v1.pdf", data=b"...", mime_type="application/pdf")],
    )
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from io import BytesIO
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import select, update

from partsportal.config import settings
from partsportal.core.database.models import FileAsset, Principal, Role, Upload, UploadStatus
from partsportal.core.errors import (
    AuthorizationError,
    PartialIngestionFailure,
    StorageUnavailableError,
    SubmissionValidationError,
)
from partsportal.core.shared.database_service import DatabaseService, database_service
from partsportal.core.storage.minio_service import MinIOService

logger = logging.getLogger("partsportal.ingestion")


@dataclass
class IncomingFile:
    """One file of a submission as received from the caller."""
    name: str
    data: bytes
    mime_type: str = ""
    size: Optional[int] = None

    @property
    def size_bytes(self) -> int:
        return len(self.data)


@dataclass
class FileOutcome:
    """Result of one per-file branch."""
    file_name: str
    storage_key: str
    file_asset_id: Optional[UUID] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class _StampClock:
    """Millisecond wall-clock stamps, bumped so that no two are equal."""

    def __init__(self):
        self._lock = threading.Lock()
        self._last = 0

    def next(self) -> int:
        with self._lock:
            stamp = max(int(time.time() * 1000), self._last + 1)
            self._last = stamp
            return stamp


_stamp_clock = _StampClock()


def build_storage_key(upload_id: UUID, file_name: str, stamp: Optional[int] = None) -> str:
    """
    Blob store key for a file of an upload.

    The original file name is kept readable; path separators are replaced so
    the key stays one level below the upload prefix.
    """
    if stamp is None:
        stamp = _stamp_clock.next()
    safe_name = file_name.replace("/", "_").replace("\\", "_")
    return f"{upload_id}/{stamp}_{safe_name}"


class IngestionService:
    """
    Creates uploads and their files.

    Each file branch opens its own catalog session; the Upload insert and the
    final status update use sessions of their own as well, so a failed branch
    never rolls back anything written by another.
    """

    def __init__(self, database: Optional[DatabaseService] = None):
        self._database = database

    @property
    def database(self) -> DatabaseService:
        return self._database or database_service

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def validate_submission(
        self,
        part_number: str,
        part_name: str,
        files: Sequence[IncomingFile],
    ) -> Tuple[str, str]:
        """
        Check a submission before anything is written.

        Returns:
            (part_number, part_name) trimmed

        Raises:
            SubmissionValidationError: On the first problem found
        """
        part_number = (part_number or "").strip()
        part_name = (part_name or "").strip()

        if not part_number:
            raise SubmissionValidationError("Part number is required")
        if not part_name:
            raise SubmissionValidationError("Part name is required")
        if not files:
            raise SubmissionValidationError("Please select at least one file")
        if len(files) > settings.max_files_per_upload:
            raise SubmissionValidationError(
                f"Too many files: {len(files)} (max {settings.max_files_per_upload})"
            )

        for f in files:
            if not (f.name or "").strip():
                raise SubmissionValidationError("Every file needs a name")
            if f.size is not None and f.size != f.size_bytes:
                raise SubmissionValidationError(
                    f"Declared size of {f.name} ({f.size}) does not match its content ({f.size_bytes})"
                )
            if f.size_bytes > settings.max_file_size:
                raise SubmissionValidationError(
                    f"{f.name} is too large: {f.size_bytes} bytes (max {settings.max_file_size})"
                )

        return part_number, part_name

    # =========================================================================
    # SUBMIT
    # =========================================================================

    async def submit(
        self,
        blob_store: MinIOService,
        owner_id: UUID,
        part_number: str,
        part_name: str,
        files: Sequence[IncomingFile],
    ) -> UUID:
        """
        Create one Upload and its FileAssets.

        Args:
            blob_store: Blob store that receives the file bytes
            owner_id: Submitting vendor
            part_number: Part identifier (trimmed, non-empty)
            part_name: Part label (trimmed, non-empty)
            files: At least one file

        Returns:
            Id of the new Upload

        Raises:
            SubmissionValidationError: Bad input or unknown owner; nothing written
            AuthorizationError: Owner is not a vendor; nothing written
            StorageUnavailableError: Upload row could not be written; nothing written
            PartialIngestionFailure: Some files failed; the Upload and the
                files that did succeed remain persisted
        """
        part_number, part_name = self.validate_submission(part_number, part_name, files)

        upload_id = await self._create_upload(owner_id, part_number, part_name, len(files))

        # Branches never raise; return_exceptions guards against anything unexpected
        results = await asyncio.gather(
            *[self._store_file(blob_store, upload_id, f) for f in files],
            return_exceptions=True,
        )

        outcomes: List[FileOutcome] = []
        for f, result in zip(files, results):
            if isinstance(result, BaseException):
                logger.error(f"[upload {upload_id}] branch for {f.name} raised: {result!r}")
                outcomes.append(FileOutcome(file_name=f.name, storage_key="", error=str(result)))
            else:
                outcomes.append(result)

        failures = [o for o in outcomes if not o.ok]
        persisted = len(outcomes) - len(failures)

        final_status = UploadStatus.complete if not failures else UploadStatus.incomplete
        await self._mark_status(upload_id, final_status)

        if failures:
            logger.warning(
                f"Upload {upload_id} partially persisted: {persisted}/{len(files)} files stored, "
                f"no rollback performed"
            )
            raise PartialIngestionFailure(
                upload_id=upload_id,
                expected=len(files),
                persisted=persisted,
                failures=[f"{o.file_name}: {o.error}" for o in failures],
            )

        logger.info(
            f"Upload {upload_id} accepted: part_number={part_number}, "
            f"owner={owner_id}, files={len(files)}"
        )
        return upload_id

    async def _create_upload(
        self, owner_id: UUID, part_number: str, part_name: str, expected: int
    ) -> UUID:
        """Check the owner and insert the Upload row in its own transaction."""
        try:
            async with self.database.get_session() as session:
                result = await session.execute(select(Principal).where(Principal.id == owner_id))
                owner = result.scalar_one_or_none()
                if owner is None:
                    raise SubmissionValidationError(f"Unknown owner {owner_id}")
                if owner.role != Role.vendor:
                    raise AuthorizationError("Only vendor principals may submit uploads")

                upload = Upload(
                    owner_id=owner_id,
                    part_number=part_number,
                    part_name=part_name,
                    status=UploadStatus.pending,
                    expected_file_count=expected,
                )
                session.add(upload)
                await asyncio.wait_for(session.flush(), timeout=settings.catalog_write_timeout)
                upload_id = upload.id
        except (SubmissionValidationError, AuthorizationError):
            raise
        except Exception as e:
            logger.error(f"Failed to create upload for owner {owner_id}: {e}")
            raise StorageUnavailableError("Catalog store unavailable, upload not created", cause=e) from e

        logger.debug(f"Created upload {upload_id} expecting {expected} files")
        return upload_id

    async def _store_file(
        self, blob_store: MinIOService, upload_id: UUID, incoming: IncomingFile
    ) -> FileOutcome:
        """One branch: blob write, then metadata insert."""
        key = build_storage_key(upload_id, incoming.name)
        outcome = FileOutcome(file_name=incoming.name, storage_key=key)

        try:
            await asyncio.wait_for(
                asyncio.to_thread(
                    blob_store.put_object,
                    key,
                    BytesIO(incoming.data),
                    incoming.size_bytes,
                    incoming.mime_type or "application/octet-stream",
                ),
                timeout=settings.blob_write_timeout,
            )
        except Exception as e:
            logger.error(f"[upload {upload_id}] blob write failed for {incoming.name}: {e!r}")
            outcome.error = f"blob store write failed: {e}"
            return outcome

        try:
            async with self.database.get_session() as session:
                asset = FileAsset(
                    upload_id=upload_id,
                    file_name=incoming.name,
                    storage_key=key,
                    size_bytes=incoming.size_bytes,
                    mime_type=incoming.mime_type or "",
                )
                session.add(asset)
                await asyncio.wait_for(session.flush(), timeout=settings.catalog_write_timeout)
                outcome.file_asset_id = asset.id
        except Exception as e:
            logger.error(f"[upload {upload_id}] metadata insert failed for {incoming.name}: {e!r}")
            outcome.error = f"catalog insert failed: {e}"
            return outcome

        logger.debug(f"[upload {upload_id}] stored {incoming.name} as {key}")
        return outcome

    async def _mark_status(self, upload_id: UUID, status: UploadStatus) -> None:
        """Record the outcome; a failure here leaves the row pending for reconciliation."""
        try:
            async with self.database.get_session() as session:
                await session.execute(
                    update(Upload).where(Upload.id == upload_id).values(status=status)
                )
        except Exception as e:
            logger.error(f"Could not mark upload {upload_id} as {status.value}: {e}")


ingestion_service = IngestionService()
