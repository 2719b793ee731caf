#!/usr/bin/env python3
"""
Upload Reconciliation Utility.

A submission whose file fan-out partly failed keeps its Upload row and the
files that did make it; the row is left with status ``incomplete`` (or
``pending`` when the process died before the join). This command finds
those uploads and settles them:

    - every expected file is present: mark the upload ``complete``
    - files are missing: report it, and with ``--purge`` delete its blobs,
      its file rows and the upload itself

Pending uploads younger than ``reconcile_grace_minutes`` are skipped, since
their submission may still be running.

Usage:
    # Report and fix what can be fixed
    python -m partsportal.commands.reconcile_uploads

    # Show what would happen
    python -m partsportal.commands.reconcile_uploads --dry-run

    # Also delete uploads that are missing files (DESTRUCTIVE)
    python -m partsportal.commands.reconcile_uploads --purge
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy import and_, delete, func, or_, select, update

from partsportal.config import settings
from partsportal.core.database.models import FileAsset, Upload, UploadStatus, utcnow
from partsportal.core.shared.database_service import DatabaseService, database_service
from partsportal.core.storage.minio_service import MinIOService, get_minio_service

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger("partsportal.commands.reconcile")


@dataclass
class ReconcileReport:
    """Upload ids grouped by what happened to them."""
    completed: List[UUID] = field(default_factory=list)
    purged: List[UUID] = field(default_factory=list)
    unresolved: List[UUID] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.completed) + len(self.purged) + len(self.unresolved)


async def find_unsettled_uploads(database: DatabaseService, grace: timedelta) -> List[Upload]:
    """Incomplete uploads, plus pending ones older than ``grace``."""
    cutoff = utcnow() - grace
    async with database.get_session() as session:
        result = await session.execute(
            select(Upload)
            .where(
                or_(
                    Upload.status == UploadStatus.incomplete,
                    and_(Upload.status == UploadStatus.pending, Upload.created_at < cutoff),
                )
            )
            .order_by(Upload.created_at.asc())
        )
        return list(result.scalars().all())


async def purge_upload(
    database: DatabaseService, blob_store: MinIOService, upload_id: UUID
) -> bool:
    """
    Delete an upload's blobs, then its file rows and the upload.

    Blobs are found by the ``{upload_id}/`` key prefix, so bytes whose
    FileAsset row was never written (failed insert, timed-out put that
    finished late) are removed too.

    Returns:
        False if a blob could not be listed or deleted; the catalog rows are
        kept so the purge can be retried
    """
    async with database.get_session() as session:
        result = await session.execute(
            select(FileAsset.storage_key).where(FileAsset.upload_id == upload_id)
        )
        keys = {row[0] for row in result.all()}

    try:
        keys.update(await asyncio.to_thread(blob_store.list_objects, f"{upload_id}/"))
    except Exception as e:
        logger.error(f"  Could not list blobs of upload {upload_id}: {e}")
        return False

    for key in sorted(keys):
        try:
            await asyncio.to_thread(blob_store.delete_object, key)
        except Exception as e:
            logger.error(f"  Could not delete blob {key}: {e}")
            return False

    async with database.get_session() as session:
        await session.execute(delete(FileAsset).where(FileAsset.upload_id == upload_id))
        await session.execute(delete(Upload).where(Upload.id == upload_id))

    logger.info(f"  Purged upload {upload_id} ({len(keys)} blobs)")
    return True


async def reconcile_uploads(
    database: DatabaseService,
    blob_store: Optional[MinIOService],
    purge: bool = False,
    dry_run: bool = False,
    grace: Optional[timedelta] = None,
) -> ReconcileReport:
    """
    Settle every unsettled upload.

    Args:
        database: Catalog store
        blob_store: Blob store, required only when purging
        purge: Delete uploads that are missing files
        dry_run: Only report what would be done
        grace: Minimum age of a pending upload, defaults to reconcile_grace_minutes

    Returns:
        What was (or would be) done per upload
    """
    if grace is None:
        grace = timedelta(minutes=settings.reconcile_grace_minutes)
    if purge and blob_store is None and not dry_run:
        raise ValueError("Purging needs object storage to be enabled")

    report = ReconcileReport()
    uploads = await find_unsettled_uploads(database, grace)
    logger.info(f"Found {len(uploads)} unsettled uploads")

    for upload in uploads:
        async with database.get_session() as session:
            result = await session.execute(
                select(func.count(FileAsset.id)).where(FileAsset.upload_id == upload.id)
            )
            persisted = result.scalar() or 0

        status = UploadStatus(upload.status).value
        label = f"upload {upload.id} [{status}] part {upload.part_number}: {persisted}/{upload.expected_file_count} files"

        if persisted == upload.expected_file_count:
            if dry_run:
                logger.info(f"  [DRY RUN] Would mark complete: {label}")
            else:
                async with database.get_session() as session:
                    await session.execute(
                        update(Upload)
                        .where(Upload.id == upload.id)
                        .values(status=UploadStatus.complete)
                    )
                logger.info(f"  Marked complete: {label}")
            report.completed.append(upload.id)
            continue

        if not purge:
            logger.warning(f"  Missing files: {label}")
            report.unresolved.append(upload.id)
            continue

        if dry_run:
            logger.info(f"  [DRY RUN] Would purge: {label}")
            report.purged.append(upload.id)
        elif await purge_upload(database, blob_store, upload.id):
            report.purged.append(upload.id)
        else:
            report.unresolved.append(upload.id)

    logger.info(
        f"Reconciliation finished: {len(report.completed)} completed, "
        f"{len(report.purged)} purged, {len(report.unresolved)} unresolved"
    )
    return report


async def run(args: argparse.Namespace) -> int:
    grace = None
    if args.grace_minutes is not None:
        grace = timedelta(minutes=args.grace_minutes)

    try:
        report = await reconcile_uploads(
            database_service,
            get_minio_service(),
            purge=args.purge,
            dry_run=args.dry_run,
            grace=grace,
        )
    except ValueError as e:
        logger.error(str(e))
        return 2
    finally:
        await database_service.close()

    return 1 if report.unresolved else 0


def main():
    parser = argparse.ArgumentParser(
        description="Settle uploads left pending or incomplete by a failed submission",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m partsportal.commands.reconcile_uploads --dry-run
  python -m partsportal.commands.reconcile_uploads --purge
        """,
    )
    parser.add_argument(
        "--purge",
        action="store_true",
        help="Delete uploads that are missing files, with their blobs (DESTRUCTIVE)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be done without writing anything",
    )
    parser.add_argument(
        "--grace-minutes",
        type=int,
        default=None,
        help=f"Skip pending uploads younger than this (default: {settings.reconcile_grace_minutes})",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
