"""Page title extraction for new bookmarks."""
import logging

from bs4 import BeautifulSoup

from services.url_scraper import DEFAULT_TIMEOUT, fetch_url

logger = logging.getLogger(__name__)


def extract_title_from_html(html: str) -> str | None:
    """
    Return the trimmed text of the first <title> tag, or None.

    Pure function with no I/O. Matching is case-insensitive because the HTML parser
    lowercases tag names. An empty or whitespace-only title counts as missing.
    """
    soup = BeautifulSoup(html, 'lxml')
    title_tag = soup.find('title')
    if title_tag is None:
        return None
    title = title_tag.get_text().strip()
    return title or None


async def extract_title(url: str, timeout: float = DEFAULT_TIMEOUT) -> str:  # noqa: ASYNC109
    """
    Fetch a page and return its title, falling back to the URL itself.

    One GET, no retries. Any fetch failure or a page without a usable <title> yields
    `url` unchanged; this function never raises to its caller.
    """
    result = await fetch_url(url, timeout)
    if not result.ok:
        logger.warning("Title fetch failed for %s: %s", url, result.error)
        return url

    title = extract_title_from_html(result.text)
    if title is None:
        logger.info("No <title> found for %s", url)
        return url
    return title
