"""
Favicon discovery and archiving.

Discovery runs in two phases:

1. Check `<scheme>://<host>/favicon.ico` with a HEAD request.
2. Otherwise fetch the page and take the first `<link rel="icon">`,
   `<link rel="shortcut icon">` or `<link rel="apple-touch-icon">` href.

The chosen icon is downloaded and stored under
`favicons/<domain>-<epoch-millis>.<ext>`, with the extension derived from the
response content type.
"""
import logging
import time
from datetime import UTC, datetime, timedelta
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from services.storage import BlobStore, StorageError
from services.url_scraper import DEFAULT_TIMEOUT, fetch_url, head_url

logger = logging.getLogger(__name__)

FAVICON_PREFIX = "favicons/"
DEFAULT_EXTENSION = "ico"
DEFAULT_ICON_CONTENT_TYPE = "image/x-icon"
ICON_RELS = frozenset({"icon", "shortcut icon", "apple-touch-icon"})

CONTENT_TYPE_EXTENSIONS = {
    "image/x-icon": "ico",
    "image/vnd.microsoft.icon": "ico",
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/svg+xml": "svg",
    "image/gif": "gif",
}


class FaviconNotFoundError(Exception):
    """Raised when no favicon candidate could be located for a page."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"No favicon found for {url}: {reason}")


def media_type(content_type: str | None) -> str | None:
    """Strip parameters from a Content-Type header ('image/png; q=1' -> 'image/png')."""
    if not content_type:
        return None
    return content_type.split(";", 1)[0].strip().lower() or None


def extension_for_content_type(content_type: str | None) -> str:
    """Map an icon content type to a file extension, defaulting to 'ico'."""
    return CONTENT_TYPE_EXTENSIONS.get(media_type(content_type), DEFAULT_EXTENSION)


def find_icon_href(html: str) -> str | None:
    """Return the href of the first icon <link> in the page, or None."""
    soup = BeautifulSoup(html, 'lxml')
    for link in soup.find_all('link', href=True):
        rel = link.get('rel') or []
        # bs4 splits rel into a list: 'shortcut icon' -> ['shortcut', 'icon']
        rel_value = ' '.join(rel).lower() if isinstance(rel, list) else rel.lower()
        href = link['href'].strip()
        if rel_value in ICON_RELS and href:
            return href
    return None


def normalize_icon_href(href: str, scheme: str, host: str) -> str:
    """
    Turn an icon href into an absolute URL.

    - `//cdn.example.com/i.png` -> scheme prefixed
    - `/i.png` -> scheme and host prefixed
    - `http...` -> unchanged
    - anything else is taken relative to the host root
    """
    if href.startswith('//'):
        return f"{scheme}:{href}"
    if href.startswith('/'):
        return f"{scheme}://{host}{href}"
    if href.startswith('http'):
        return href
    return f"{scheme}://{host}/{href}"


def build_favicon_key(domain: str, content_type: str | None, now_ms: int | None = None) -> str:
    """Build the storage key `favicons/<domain>-<epoch-millis>.<ext>`."""
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    return f"{FAVICON_PREFIX}{domain}-{now_ms}.{extension_for_content_type(content_type)}"


async def find_favicon_url(url: str, timeout: float = DEFAULT_TIMEOUT) -> str:  # noqa: ASYNC109
    """
    Locate the favicon URL for a page.

    Raises:
        FaviconNotFoundError: If the URL cannot be parsed, or neither the
            /favicon.ico check nor the page's <link> tags produce a candidate.
    """
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise FaviconNotFoundError(url, f"malformed URL ({e})") from e
    if not parsed.scheme or not parsed.netloc:
        raise FaviconNotFoundError(url, "URL has no scheme or host")
    scheme, host = parsed.scheme, parsed.netloc

    default_icon = f"{scheme}://{host}/favicon.ico"
    if await head_url(default_icon, timeout):
        return default_icon

    page = await fetch_url(url, timeout)
    if not page.ok:
        raise FaviconNotFoundError(url, f"page fetch failed ({page.error})")

    href = find_icon_href(page.text)
    if href is None:
        raise FaviconNotFoundError(url, "no icon <link> in page")
    return normalize_icon_href(href, scheme, host)


async def resolve_favicon(
    url: str,
    store: BlobStore,
    timeout: float = DEFAULT_TIMEOUT,  # noqa: ASYNC109
) -> str | None:
    """
    Find, download and store the favicon for `url`.

    Returns:
        The storage key, or None if no icon was found or any step failed.
    """
    try:
        icon_url = await find_favicon_url(url, timeout)
    except FaviconNotFoundError as e:
        logger.info("%s", e)
        return None

    result = await fetch_url(icon_url, timeout)
    if not result.ok:
        logger.warning("Favicon download failed for %s: %s", icon_url, result.error)
        return None

    content_type = media_type(result.content_type) or DEFAULT_ICON_CONTENT_TYPE
    key = build_favicon_key(urlparse(url).hostname, content_type)
    try:
        await store.put(key, result.content, content_type)
    except StorageError as e:
        logger.warning("Favicon write failed for %s: %s", url, e)
        return None
    return key


def favicon_key_time(key: str) -> datetime | None:
    """Return the capture time embedded in a favicon key, or None if it has none."""
    if not key.startswith(FAVICON_PREFIX):
        return None
    stem = key.rsplit(".", 1)[0]
    _, _, millis = stem.rpartition("-")
    if not millis.isdigit():
        return None
    return datetime.fromtimestamp(0, tz=UTC) + timedelta(milliseconds=int(millis))
