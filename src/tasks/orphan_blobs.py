"""
Orphan blob detection and cleanup.

Deleting a bookmark removes its snapshot/favicon objects and then the row, as two
independent calls. If one side fails the store and the database drift apart:

- orphan objects: blobs under snapshots/ or favicons/ that no bookmark references
- dangling references: bookmarks whose snapshot_key/favicon_key names a missing blob

Creating a bookmark writes its blobs before the row is committed, so a fresh
unreferenced key may belong to a create still in flight. Keys younger than
`min_age` (by the timestamp embedded in the key) are never treated as orphans.

Usage:
    python -m tasks.orphan_blobs                         # Report only (default)
    python -m tasks.orphan_blobs --delete                # Delete orphans, clear dangling keys
    python -m tasks.orphan_blobs --delete --min-age 120  # Only objects older than two hours
"""
import argparse
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db.session import async_session_factory
from models.bookmark import Bookmark
from models.base import utc_now
from services.favicon_resolver import FAVICON_PREFIX, favicon_key_time
from services.snapshot_archiver import SNAPSHOT_PREFIX, snapshot_key_time
from services.storage import BlobStore, StorageError, get_blob_store

logger = logging.getLogger(__name__)

DEFAULT_MIN_AGE = timedelta(hours=1)

# prefix -> (referencing column, parser for the timestamp embedded in the key)
KEY_COLUMNS = {
    SNAPSHOT_PREFIX: (Bookmark.snapshot_key, snapshot_key_time),
    FAVICON_PREFIX: (Bookmark.favicon_key, favicon_key_time),
}


@dataclass
class OrphanBlobStats:
    """Statistics from an orphan blob cleanup run."""

    orphaned_objects: int = 0
    dangling_references: int = 0
    objects_deleted: int = 0
    references_cleared: int = 0
    recent_skipped: int = 0
    orphan_keys: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, int]:
        """Convert to simple dict for logging/return."""
        return {
            "orphaned_objects": self.orphaned_objects,
            "dangling_references": self.dangling_references,
            "objects_deleted": self.objects_deleted,
            "references_cleared": self.references_cleared,
            "recent_skipped": self.recent_skipped,
        }


async def cleanup_orphaned_blobs(
    db: AsyncSession,
    store: BlobStore,
    delete: bool = False,
    min_age: timedelta = DEFAULT_MIN_AGE,
    now: datetime | None = None,
) -> OrphanBlobStats:
    """
    Compare stored blob keys with the keys bookmarks reference.

    Args:
        db: Database session.
        store: Blob store holding snapshots and favicons.
        delete: If True, delete orphan objects and set dangling keys to NULL.
            If False (default), only report.
        min_age: Unreferenced keys captured more recently than this are skipped.
            Keys without an embedded timestamp count as old.
        now: Reference time for min_age (defaults to the current time).

    Returns:
        OrphanBlobStats with what was found and, in delete mode, removed.
    """
    stats = OrphanBlobStats()
    cutoff = (now or utc_now()) - min_age

    for prefix, (column, key_time) in KEY_COLUMNS.items():
        result = await db.execute(select(column).where(column.is_not(None)))
        referenced = set(result.scalars().all())
        stored = set(await store.list_keys(prefix))

        orphans = []
        for key in sorted(stored - referenced):
            captured_at = key_time(key)
            if captured_at is not None and captured_at > cutoff:
                stats.recent_skipped += 1
                continue
            orphans.append(key)
        dangling = sorted(referenced - stored)
        stats.orphaned_objects += len(orphans)
        stats.dangling_references += len(dangling)
        stats.orphan_keys.extend(orphans)

        if orphans:
            logger.info("Found %d orphaned objects under %s", len(orphans), prefix)
        if dangling:
            logger.info("Found %d dangling %s references", len(dangling), column.key)

        if not delete:
            continue

        for key in orphans:
            try:
                await store.delete(key)
            except StorageError as e:
                logger.warning("Could not delete orphan %s: %s", key, e)
                continue
            stats.objects_deleted += 1

        if dangling:
            cleared = await db.execute(
                update(Bookmark).where(column.in_(dangling)).values({column.key: None}),
            )
            stats.references_cleared += cleared.rowcount

    if delete:
        await db.commit()

    return stats


async def run_orphan_blob_cleanup(
    db: AsyncSession | None = None,
    store: BlobStore | None = None,
    delete: bool = False,
    min_age: timedelta = DEFAULT_MIN_AGE,
) -> OrphanBlobStats:
    """
    Entry point for orphan blob cleanup.

    Args:
        db: Database session. If None, creates one from async_session_factory.
        store: Blob store. If None, uses the configured store.
        delete: If True, delete orphans and clear dangling references.
        min_age: Grace period protecting blobs of creates still in flight.
    """
    logger.info("Starting orphan blob cleanup (delete=%s)", delete)
    store = store or get_blob_store()

    if db is not None:
        stats = await cleanup_orphaned_blobs(db, store, delete=delete, min_age=min_age)
    else:
        async with async_session_factory() as session:
            stats = await cleanup_orphaned_blobs(
                session, store, delete=delete, min_age=min_age,
            )

    logger.info("Orphan blob cleanup complete: %s", stats.to_dict())
    return stats


def main() -> None:
    """CLI entry point with --delete and --min-age flags."""
    parser = argparse.ArgumentParser(
        description="Detect and optionally remove orphaned snapshot and favicon blobs.",
    )
    parser.add_argument(
        "--delete",
        action="store_true",
        help="Delete orphan objects and clear dangling keys (default: report only)",
    )
    parser.add_argument(
        "--min-age",
        type=int,
        default=int(DEFAULT_MIN_AGE.total_seconds() // 60),
        help="Skip objects captured less than this many minutes ago (default: 60)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(run_orphan_blob_cleanup(
        delete=args.delete, min_age=timedelta(minutes=args.min_age),
    ))


if __name__ == "__main__":
    main()
