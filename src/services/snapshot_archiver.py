"""Archive a verbatim HTML copy of a bookmarked page."""
import logging
import uuid
from datetime import UTC, datetime

from services.storage import BlobStore, StorageError
from services.url_scraper import DEFAULT_TIMEOUT, fetch_url

logger = logging.getLogger(__name__)

SNAPSHOT_PREFIX = "snapshots/"
SNAPSHOT_CONTENT_TYPE = "text/html"


def build_snapshot_key(now: datetime | None = None) -> str:
    """
    Build a unique storage key: `snapshots/<ISO-timestamp>-<uuid4>.html`.

    The random component keeps keys distinct even for simultaneous captures of
    the same URL.
    """
    now = now or datetime.now(UTC)
    timestamp = now.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return f"{SNAPSHOT_PREFIX}{timestamp}-{uuid.uuid4()}.html"


async def archive_snapshot(
    url: str,
    store: BlobStore,
    timeout: float = DEFAULT_TIMEOUT,  # noqa: ASYNC109
) -> str | None:
    """
    Fetch `url` and store the response body as-is.

    Returns:
        The storage key, or None if the fetch or the write failed.
    """
    result = await fetch_url(url, timeout)
    if not result.ok:
        logger.warning("Snapshot fetch failed for %s: %s", url, result.error)
        return None

    key = build_snapshot_key()
    try:
        await store.put(key, result.content, SNAPSHOT_CONTENT_TYPE)
    except StorageError as e:
        logger.warning("Snapshot write failed for %s: %s", url, e)
        return None
    return key


def snapshot_key_time(key: str) -> datetime | None:
    """Return the capture time embedded in a snapshot key, or None if it has none."""
    if not key.startswith(SNAPSHOT_PREFIX):
        return None
    # "2024-03-05T14:07:09.123Z" is 24 characters
    timestamp = key[len(SNAPSHOT_PREFIX):len(SNAPSHOT_PREFIX) + 24]
    try:
        return datetime.fromisoformat(timestamp).astimezone(UTC)
    except ValueError:
        return None
