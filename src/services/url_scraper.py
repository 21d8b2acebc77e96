"""Fetch layer shared by the capture pipeline: guarded GET and HEAD requests."""
import ipaddress
import socket
from dataclasses import dataclass
from urllib.parse import urlparse

import httpx

USER_AGENT = 'Mozilla/5.0 (compatible; BookmarkBot/1.0)'
DEFAULT_TIMEOUT = 10.0


class SSRFBlockedError(Exception):
    """Raised when a URL targets a private/internal network address."""

    pass


def is_private_ip(ip_str: str) -> bool:
    """
    Check if an IP address is private, loopback, or otherwise internal.

    Args:
        ip_str: IP address string (IPv4 or IPv6).

    Returns:
        True if the IP is private/internal, False if public.
    """
    try:
        ip = ipaddress.ip_address(ip_str)
        return (
            ip.is_private
            or ip.is_loopback
            or ip.is_link_local
            or ip.is_multicast
            or ip.is_reserved
            or ip.is_unspecified
        )
    except ValueError:
        # Unparseable addresses are treated as internal
        return True


def validate_url_not_private(url: str) -> None:
    """
    Validate that a URL does not target a private/internal network.

    Resolves the hostname so that a public name pointing at an internal address
    is caught as well.

    Raises:
        SSRFBlockedError: If the URL targets a private network.
        ValueError: If the URL is malformed or the host cannot be resolved.
    """
    parsed = urlparse(url)
    hostname = parsed.hostname

    if parsed.scheme not in ('http', 'https'):
        raise ValueError(f"Unsupported URL scheme: {url}")
    if not hostname:
        raise ValueError(f"Invalid URL (no hostname): {url}")

    if hostname.lower() in ('localhost', 'localhost.localdomain'):
        raise SSRFBlockedError(f"Blocked request to localhost: {url}")

    try:
        # sockaddr is (ip, port) for IPv4 or (ip, port, flow, scope) for IPv6
        addrinfo = socket.getaddrinfo(hostname, None, socket.AF_UNSPEC, socket.SOCK_STREAM)
    except socket.gaierror as e:
        raise ValueError(f"Could not resolve hostname: {hostname}") from e

    for _family, _, _, _, sockaddr in addrinfo:
        ip_str = sockaddr[0]
        if is_private_ip(ip_str):
            raise SSRFBlockedError(
                f"Blocked request to private/internal address: {url} resolves to {ip_str}",
            )


@dataclass
class FetchResult:
    """
    Result of fetching a URL.

    Failures are reported through `error` instead of being raised, so callers can
    fall back to a default without a try/except around every fetch.
    """

    content: bytes | None
    final_url: str
    status_code: int | None
    content_type: str | None
    error: str | None

    @property
    def ok(self) -> bool:
        """True when the fetch produced a 2xx body."""
        return self.error is None and self.content is not None

    @property
    def text(self) -> str | None:
        """Body decoded as text (UTF-8, undecodable bytes replaced)."""
        if self.content is None:
            return None
        return self.content.decode('utf-8', errors='replace')


def _failed(url: str, error: str, status_code: int | None = None,
            content_type: str | None = None) -> FetchResult:
    return FetchResult(
        content=None,
        final_url=url,
        status_code=status_code,
        content_type=content_type,
        error=error,
    )


async def fetch_url(url: str, timeout: float = DEFAULT_TIMEOUT) -> FetchResult:  # noqa: ASYNC109
    """
    GET a URL once and return its raw body.

    Best-effort: follows redirects, never raises, and reports non-2xx responses,
    timeouts, transport errors and blocked (internal) targets through
    `FetchResult.error`. No retries.

    Args:
        url:
            The URL to fetch.
        timeout:
            Request timeout in seconds.
    """
    try:
        validate_url_not_private(url)
    except (SSRFBlockedError, ValueError) as e:
        return _failed(url, str(e))

    try:
        async with httpx.AsyncClient(
            follow_redirects=True,
            timeout=timeout,
            headers={'User-Agent': USER_AGENT},
            http2=True,
        ) as client:
            response = await client.get(url)
    except httpx.TimeoutException:
        return _failed(url, "Request timed out")
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        return _failed(url, f"Request failed: {e}")

    final_url = str(response.url)
    content_type = response.headers.get('content-type')

    # Redirects may land on an internal address even if the original host was public
    if final_url != url:
        try:
            validate_url_not_private(final_url)
        except (SSRFBlockedError, ValueError) as e:
            return _failed(final_url, f"Redirect blocked: {e}", response.status_code)

    if not response.is_success:
        return _failed(
            final_url, f"HTTP {response.status_code}", response.status_code, content_type,
        )

    return FetchResult(
        content=response.content,
        final_url=final_url,
        status_code=response.status_code,
        content_type=content_type,
        error=None,
    )


async def head_url(url: str, timeout: float = DEFAULT_TIMEOUT) -> bool:  # noqa: ASYNC109
    """
    Send a single HEAD request and report whether it answered 2xx.

    Never raises; blocked targets and transport errors count as "not found".
    """
    try:
        validate_url_not_private(url)
    except (SSRFBlockedError, ValueError):
        return False

    try:
        async with httpx.AsyncClient(
            follow_redirects=True,
            timeout=timeout,
            headers={'User-Agent': USER_AGENT},
            http2=True,
        ) as client:
            response = await client.head(url)
    except (httpx.HTTPError, httpx.InvalidURL):
        return False

    if str(response.url) != url:
        try:
            validate_url_not_private(str(response.url))
        except (SSRFBlockedError, ValueError):
            return False

    return response.is_success
