"""Run the metadata capture steps for a newly submitted URL."""
import asyncio
from dataclasses import dataclass

from services.favicon_resolver import resolve_favicon
from services.metadata_extractor import extract_title
from services.snapshot_archiver import archive_snapshot
from services.storage import BlobStore
from services.url_scraper import DEFAULT_TIMEOUT


@dataclass
class CapturedPage:
    """What the capture pipeline produced for one URL."""

    title: str
    snapshot_key: str | None
    favicon_key: str | None

    @property
    def blob_keys(self) -> list[str]:
        """Keys of every blob written during capture."""
        return [key for key in (self.snapshot_key, self.favicon_key) if key]


async def capture_page(
    url: str,
    store: BlobStore,
    timeout: float = DEFAULT_TIMEOUT,  # noqa: ASYNC109
) -> CapturedPage:
    """
    Capture title, snapshot and favicon for `url`.

    The three steps do not depend on each other and are awaited together. Each one
    degrades to its default on failure (title -> url, keys -> None), so this never
    raises because of the target site.
    """
    title, snapshot_key, favicon_key = await asyncio.gather(
        extract_title(url, timeout),
        archive_snapshot(url, store, timeout),
        resolve_favicon(url, store, timeout),
    )
    return CapturedPage(title=title, snapshot_key=snapshot_key, favicon_key=favicon_key)
