"""System endpoints: health of the catalog database and the blob store."""

import asyncio
from typing import Any, Dict

from fastapi import APIRouter

from ....config import settings
from ....core.shared.database_service import database_service
from ....core.storage.minio_service import get_minio_service

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/health", summary="Service health")
async def health() -> Dict[str, Any]:
    """
    Report database and object storage status.

    Overall status is "healthy" only when every enabled component is.
    """
    database = await database_service.health_check()

    minio = get_minio_service()
    if minio is None:
        storage: Dict[str, Any] = {"status": "disabled"}
    else:
        connected, buckets, error = await asyncio.to_thread(minio.check_health)
        storage = {
            "status": "healthy" if connected and minio.bucket in (buckets or []) else "unhealthy",
            "connected": connected,
            "bucket": minio.bucket,
        }
        if error:
            storage["error"] = error

    components = [database["status"], storage["status"]]
    overall = "healthy" if all(s in ("healthy", "disabled") for s in components) else "unhealthy"
    return {
        "status": overall,
        "version": settings.api_version,
        "database": database,
        "object_storage": storage,
    }
