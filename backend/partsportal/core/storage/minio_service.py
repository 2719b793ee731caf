"""
MinIO Storage Service.

Blob store for uploaded part files. Keys are chosen by the ingestion
workflow; this service only moves bytes in and out of the parts bucket.

The minio client is synchronous. Async callers go through asyncio.to_thread.
"""

import logging
from functools import lru_cache
from typing import BinaryIO, Dict, List, Optional, Tuple

from minio import Minio
from minio.error import S3Error

from partsportal.config import settings
from partsportal.core.shared.config_loader import config_loader

logger = logging.getLogger("partsportal.minio")


class MinIOService:
    """
    MinIO storage service for the parts bucket.

    Configuration Sources (priority order):
        1. config.yml (if present) via config_loader.get_minio_config()
        2. Environment variables via settings
    """

    def __init__(self):
        self._client: Optional[Minio] = None
        self._load_config()

    def _load_config(self):
        minio_config = config_loader.get_minio_config()

        if minio_config:
            logger.info("Loading MinIO configuration from config.yml")
            self.enabled = minio_config.enabled
            self.endpoint = minio_config.endpoint
            self.access_key = minio_config.access_key
            self.secret_key = minio_config.secret_key
            self.secure = minio_config.secure
            self.bucket = minio_config.bucket_parts
        else:
            logger.info("Loading MinIO configuration from environment variables")
            self.enabled = settings.use_object_storage
            self.endpoint = settings.minio_endpoint
            self.access_key = settings.minio_access_key
            self.secret_key = settings.minio_secret_key
            self.secure = settings.minio_secure
            self.bucket = settings.minio_bucket_parts

    @property
    def client(self) -> Minio:
        """Get or create MinIO client (lazy initialization)."""
        if self._client is None:
            self._client = Minio(
                endpoint=self.endpoint,
                access_key=self.access_key,
                secret_key=self.secret_key,
                secure=self.secure,
            )
            logger.info(
                f"MinIO client initialized (endpoint={self.endpoint}, "
                f"secure={self.secure})"
            )
        return self._client

    # =========================================================================
    # HEALTH CHECK
    # =========================================================================

    def check_health(self) -> Tuple[bool, Optional[List[str]], Optional[str]]:
        """
        Check MinIO connection health.

        Returns:
            Tuple of (connected, buckets list, error message)
        """
        try:
            buckets = self.client.list_buckets()
            bucket_names = [b.name for b in buckets]
            return True, bucket_names, None
        except Exception as e:
            logger.error(f"MinIO health check failed: {e}")
            return False, None, str(e)

    # =========================================================================
    # BUCKET OPERATIONS
    # =========================================================================

    def ensure_bucket(self) -> bool:
        """
        Create the parts bucket if it doesn't exist.

        Returns:
            True if bucket was created, False if it already existed
        """
        try:
            if not self.client.bucket_exists(self.bucket):
                self.client.make_bucket(self.bucket)
                logger.info(f"Created bucket: {self.bucket}")
                return True
            logger.debug(f"Bucket already exists: {self.bucket}")
            return False
        except S3Error as e:
            logger.error(f"Failed to create bucket {self.bucket}: {e}")
            raise

    # =========================================================================
    # OBJECT OPERATIONS
    # =========================================================================

    def object_exists(self, key: str) -> bool:
        try:
            self.client.stat_object(self.bucket, key)
            return True
        except S3Error as e:
            if e.code == "NoSuchKey":
                return False
            raise

    def list_objects(self, prefix: str) -> List[str]:
        """Keys of every object under ``prefix``."""
        return [
            obj.object_name
            for obj in self.client.list_objects(self.bucket, prefix=prefix, recursive=True)
        ]

    def put_object(
        self,
        key: str,
        data: BinaryIO,
        length: int,
        content_type: str = "application/octet-stream",
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        """
        Upload an object.

        Args:
            key: Object key
            data: File-like object with content
            length: Content length in bytes
            content_type: MIME type
            metadata: User metadata

        Returns:
            Object ETag
        """
        result = self.client.put_object(
            bucket_name=self.bucket,
            object_name=key,
            data=data,
            length=length,
            content_type=content_type or "application/octet-stream",
            metadata=metadata,
        )
        logger.info(f"Uploaded object {self.bucket}/{key} ({length} bytes)")
        return result.etag

    def get_object(self, key: str) -> bytes:
        """
        Download an object.

        Args:
            key: Object key

        Returns:
            Object content
        """
        response = None
        try:
            response = self.client.get_object(self.bucket, key)
            return response.read()
        finally:
            if response:
                response.close()
                response.release_conn()

    def delete_object(self, key: str) -> bool:
        """
        Delete an object.

        Returns:
            True if deleted (or didn't exist)
        """
        try:
            self.client.remove_object(self.bucket, key)
            logger.info(f"Deleted object {self.bucket}/{key}")
            return True
        except S3Error as e:
            if e.code == "NoSuchKey":
                return True  # Already gone
            raise


# =============================================================================
# SINGLETON SERVICE
# =============================================================================


@lru_cache()
def get_minio_service() -> Optional[MinIOService]:
    """
    Get singleton MinIO service instance if object storage is enabled.

    Checks config.yml first, then environment variables.

    Returns:
        MinIOService if object storage is enabled, else None
    """
    minio_config = config_loader.get_minio_config()
    if minio_config:
        if not minio_config.enabled:
            return None
    elif not settings.use_object_storage:
        return None

    return MinIOService()
