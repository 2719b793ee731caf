# backend/partsportal/core/retrieval/download_service.py
"""
Retrieval path: resolve a FileAsset to its bytes for an authorized caller.

Steps:
    1. Look up the FileAsset (NotFoundError if unknown).
    2. Load its parent Upload and check the owner against the caller's scope
       (AuthorizationError if outside it).
    3. Fetch the bytes from the blob store by storage_key
       (StorageUnavailableError on any failure, no retry).

Bytes are returned with the original file name for client-side naming.
"""

import asyncio
import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from partsportal.config import settings
from partsportal.core.auth.authorization import Scope, ensure_owner_visible
from partsportal.core.database.models import FileAsset, Upload
from partsportal.core.errors import NotFoundError, StorageUnavailableError
from partsportal.core.storage.minio_service import MinIOService

logger = logging.getLogger("partsportal.retrieval")


@dataclass
class DownloadedFile:
    file_name: str
    mime_type: str
    data: bytes

    @property
    def size_bytes(self) -> int:
        return len(self.data)


class DownloadService:
    """Scope-checked file downloads."""

    async def resolve_download(
        self,
        session: AsyncSession,
        blob_store: MinIOService,
        scope: Scope,
        file_asset_id: UUID,
    ) -> DownloadedFile:
        """
        Fetch a file's bytes.

        Raises:
            NotFoundError: FileAsset id is unknown
            AuthorizationError: File belongs to an upload outside ``scope``
            StorageUnavailableError: Catalog lookup or blob store fetch failed
        """
        try:
            result = await session.execute(
                select(FileAsset, Upload.owner_id)
                .join(Upload, Upload.id == FileAsset.upload_id)
                .where(FileAsset.id == file_asset_id)
            )
            row = result.first()
        except SQLAlchemyError as e:
            logger.error(f"Catalog lookup of file {file_asset_id} failed: {e}")
            raise StorageUnavailableError("Catalog store unavailable, could not look up file", cause=e) from e

        if row is None:
            raise NotFoundError(f"File {file_asset_id} not found")

        asset, owner_id = row
        ensure_owner_visible(scope, owner_id, target=f"file {file_asset_id}")

        try:
            data = await asyncio.wait_for(
                asyncio.to_thread(blob_store.get_object, asset.storage_key),
                timeout=settings.blob_write_timeout,
            )
        except Exception as e:
            logger.error(f"Blob fetch failed for file {file_asset_id} ({asset.storage_key}): {e!r}")
            raise StorageUnavailableError(
                f"Could not fetch {asset.file_name} from storage", cause=e
            ) from e

        logger.info(
            f"Resolved download file={file_asset_id} for {scope.role.value} "
            f"{scope.principal_id} ({len(data)} bytes)"
        )
        return DownloadedFile(file_name=asset.file_name, mime_type=asset.mime_type, data=data)


download_service = DownloadService()
