# ============================================================================
# backend/partsportal/api/v1/routers/files.py
# ============================================================================
"""
Files Router.

Downloads are proxied through the backend: the file is fetched from the blob
store and returned with its original name, after the caller's scope has been
checked against the owning upload.
"""

import io
import logging
from urllib.parse import quote
from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from ....config import settings
from ....core.auth.authorization import Scope
from ....core.errors import AuthorizationError, NotFoundError
from ....core.retrieval.download_service import download_service
from ....core.shared.database_service import database_service
from ....core.storage.minio_service import MinIOService
from ....dependencies import get_blob_store, get_scope

logger = logging.getLogger("partsportal.api.files")

router = APIRouter(prefix="/files", tags=["files"])


def content_disposition(file_name: str) -> str:
    """Attachment header with an ASCII fallback and the RFC 5987 UTF-8 name."""
    fallback = file_name.encode("ascii", "replace").decode("ascii").replace('"', "'")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(file_name)}"


@router.get(
    "/{file_id}/download",
    summary="Download file",
    description="Download a file's content with its original file name.",
)
async def download_file(
    file_id: UUID,
    scope: Scope = Depends(get_scope),
    blob_store: MinIOService = Depends(get_blob_store),
):
    async with database_service.get_session() as session:
        try:
            downloaded = await download_service.resolve_download(session, blob_store, scope, file_id)
        except AuthorizationError as e:
            if settings.mask_forbidden_as_not_found:
                raise NotFoundError(f"File {file_id} not found") from e
            raise

    return StreamingResponse(
        io.BytesIO(downloaded.data),
        media_type=downloaded.mime_type or "application/octet-stream",
        headers={
            "Content-Disposition": content_disposition(downloaded.file_name),
            "Content-Length": str(downloaded.size_bytes),
        },
    )
