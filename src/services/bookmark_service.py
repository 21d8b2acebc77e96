"""Service layer for bookmark CRUD operations."""
import logging

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models.base import utc_now
from models.bookmark import Bookmark
from schemas.bookmark import BookmarkCreate, BookmarkUpdate
from services.page_capture import capture_page
from services.storage import BlobStore, StorageError
from services.url_scraper import DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

URL_UNIQUE_INDEX = "uq_bookmarks_url"


class DuplicateUrlError(Exception):
    """Raised when a bookmark with the same URL already exists."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"A bookmark with URL '{url}' already exists")


def escape_like(value: str) -> str:
    r"""
    Escape special LIKE characters for safe use in LIKE/ILIKE patterns.

    - % matches any sequence of characters
    - _ matches any single character
    - \\ is the escape character
    """
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _is_url_conflict(error: IntegrityError) -> bool:
    """
    Whether an insert failed on the unique url index.

    PostgreSQL names the index in the message; SQLite names the column instead.
    """
    message = str(error.orig)
    return URL_UNIQUE_INDEX in message or "bookmarks.url" in message


async def _find_by_url(db: AsyncSession, url: str) -> Bookmark | None:
    """Return the bookmark stored for `url`, if any."""
    result = await db.execute(select(Bookmark).where(Bookmark.url == url))
    return result.scalar_one_or_none()


async def _delete_blobs(store: BlobStore, keys: list[str]) -> None:
    """Best-effort removal of blob objects; failures are logged, not raised."""
    for key in keys:
        try:
            await store.delete(key)
        except StorageError as e:
            logger.warning("Could not delete blob %s: %s", key, e)


async def list_bookmarks(
    db: AsyncSession,
    query: str | None = None,
    include_archived: bool = False,
) -> list[Bookmark]:
    """
    List bookmarks, newest first.

    Args:
        db: Database session.
        query:
            Case-insensitive substring matched against title, description, tags
            and url. Blank means no filtering.
        include_archived: If False (default), archived bookmarks are left out.
    """
    stmt = select(Bookmark)
    if not include_archived:
        stmt = stmt.where(Bookmark.archived.is_(False))

    if query and query.strip():
        pattern = f"%{escape_like(query.strip())}%"
        stmt = stmt.where(
            or_(
                Bookmark.title.ilike(pattern, escape="\\"),
                Bookmark.description.ilike(pattern, escape="\\"),
                Bookmark.tags.ilike(pattern, escape="\\"),
                Bookmark.url.ilike(pattern, escape="\\"),
            ),
        )

    stmt = stmt.order_by(Bookmark.created_at.desc(), Bookmark.id.desc())
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_bookmark(db: AsyncSession, bookmark_id: int) -> Bookmark | None:
    """Get a bookmark by ID. Returns None if not found."""
    result = await db.execute(select(Bookmark).where(Bookmark.id == bookmark_id))
    return result.scalar_one_or_none()


async def create_bookmark(
    db: AsyncSession,
    store: BlobStore,
    data: BookmarkCreate,
    timeout: float = DEFAULT_TIMEOUT,  # noqa: ASYNC109
) -> Bookmark:
    """
    Create a bookmark, capturing title, snapshot and favicon first.

    Flow:
    1. Reject the URL if it is already bookmarked (before any network fetch).
    2. Capture metadata. Capture failures never block creation; they leave the
       title as the URL and the blob keys as None.
    3. Insert the row with the captured values.

    Raises:
        DuplicateUrlError: If the URL is already bookmarked, including when a
            concurrent request inserted it between the check and the insert.

    Note:
        Does not commit. Caller (session generator) handles commit at request end.
    """
    url = data.url

    if await _find_by_url(db, url) is not None:
        raise DuplicateUrlError(url)

    captured = await capture_page(url, store, timeout)

    bookmark = Bookmark(
        url=url,
        title=captured.title,
        snapshot_key=captured.snapshot_key,
        favicon_key=captured.favicon_key,
    )
    db.add(bookmark)
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        # Blobs from this capture are unreferenced either way
        await _delete_blobs(store, captured.blob_keys)
        # Lost the race on uq_bookmarks_url
        if _is_url_conflict(e):
            raise DuplicateUrlError(url) from e
        raise
    await db.refresh(bookmark)
    logger.info(
        "Created bookmark %s for %s (snapshot=%s, favicon=%s)",
        bookmark.id, url, captured.snapshot_key, captured.favicon_key,
    )
    return bookmark


async def update_bookmark(
    db: AsyncSession,
    bookmark_id: int,
    data: BookmarkUpdate,
) -> Bookmark | None:
    """
    Update the user-editable fields of a bookmark. Returns None if not found.

    Only fields present in the request are changed. updated_at is always refreshed.

    Note: Does not commit. Caller (session generator) handles commit at request end.
    """
    bookmark = await get_bookmark(db, bookmark_id)
    if bookmark is None:
        return None

    update_data = data.model_dump(exclude_unset=True)
    # archived is NOT NULL; an explicit null means "leave as is"
    if update_data.get("archived") is None:
        update_data.pop("archived", None)

    for field, value in update_data.items():
        setattr(bookmark, field, value)
    bookmark.updated_at = utc_now()

    await db.flush()
    await db.refresh(bookmark)
    return bookmark


async def delete_bookmark(
    db: AsyncSession,
    store: BlobStore,
    bookmark_id: int,
) -> bool:
    """
    Delete a bookmark together with its snapshot and favicon objects.

    Blob deletion is best-effort and happens before the row is removed; the two are
    not transactional, so a failed blob delete can leave an orphan object (see
    tasks.orphan_blobs).

    Returns:
        True if deleted, False if no bookmark has this ID.

    Note:
        Does not commit. Caller (session generator) handles commit at request end.
    """
    bookmark = await get_bookmark(db, bookmark_id)
    if bookmark is None:
        return False

    url = bookmark.url
    keys = [key for key in (bookmark.snapshot_key, bookmark.favicon_key) if key]
    await _delete_blobs(store, keys)

    await db.delete(bookmark)
    await db.flush()
    logger.info("Deleted bookmark %s (%s)", bookmark_id, url)
    return True
