"""
Tests for favicon discovery and archiving.

Tests cover:
- href normalization and <link> parsing
- content type to extension mapping and key format
- discovery order: /favicon.ico HEAD check first, then the page's icon <link>
- download and storage, including failure paths
"""
import re
from datetime import UTC, datetime

import httpx
import pytest
import respx

from services.favicon_resolver import (
    FaviconNotFoundError,
    build_favicon_key,
    extension_for_content_type,
    favicon_key_time,
    find_favicon_url,
    find_icon_href,
    media_type,
    normalize_icon_href,
    resolve_favicon,
)
from services.storage import LocalBlobStore

PNG_BYTES = b'\x89PNG\r\n\x1a\nfake'
ICO_BYTES = b'\x00\x00\x01\x00fake'


class TestNormalizeIconHref:
    """Tests for turning icon hrefs into absolute URLs."""

    def test__normalize_icon_href__protocol_relative(self) -> None:
        result = normalize_icon_href('//cdn.example.com/i.png', 'https', 'example.com')
        assert result == 'https://cdn.example.com/i.png'

    def test__normalize_icon_href__root_relative(self) -> None:
        assert normalize_icon_href('/f.png', 'https', 'example.com') == 'https://example.com/f.png'

    def test__normalize_icon_href__absolute(self) -> None:
        href = 'http://static.example.org/icon.svg'
        assert normalize_icon_href(href, 'https', 'example.com') == href

    def test__normalize_icon_href__bare_path(self) -> None:
        result = normalize_icon_href('img/icon.png', 'http', 'example.com:8080')
        assert result == 'http://example.com:8080/img/icon.png'


class TestFindIconHref:
    """Tests for locating the icon <link> in a page."""

    def test__find_icon_href__rel_icon(self) -> None:
        html = '<html><head><link rel="icon" href="/f.png"></head></html>'
        assert find_icon_href(html) == '/f.png'

    def test__find_icon_href__shortcut_icon(self) -> None:
        html = '<html><head><link rel="shortcut icon" href="/old.ico"></head></html>'
        assert find_icon_href(html) == '/old.ico'

    def test__find_icon_href__apple_touch_icon_case_insensitive(self) -> None:
        html = '<html><head><link REL="Apple-Touch-Icon" href="/apple.png"></head></html>'
        assert find_icon_href(html) == '/apple.png'

    def test__find_icon_href__first_match_wins(self) -> None:
        html = (
            '<html><head>'
            '<link rel="stylesheet" href="/style.css">'
            '<link rel="apple-touch-icon" href="/first.png">'
            '<link rel="icon" href="/second.png">'
            '</head></html>'
        )
        assert find_icon_href(html) == '/first.png'

    def test__find_icon_href__none(self) -> None:
        html = '<html><head><link rel="stylesheet" href="/style.css"></head></html>'
        assert find_icon_href(html) is None

    def test__find_icon_href__empty_href_skipped(self) -> None:
        html = '<html><head><link rel="icon" href=""><link rel="icon" href="/x.ico"></head></html>'
        assert find_icon_href(html) == '/x.ico'


class TestFaviconKeys:
    """Tests for extension mapping and storage keys."""

    @pytest.mark.parametrize(('content_type', 'extension'), [
        ('image/x-icon', 'ico'),
        ('image/vnd.microsoft.icon', 'ico'),
        ('image/png', 'png'),
        ('image/jpeg', 'jpg'),
        ('image/svg+xml', 'svg'),
        ('image/gif', 'gif'),
        ('image/png; charset=binary', 'png'),
        ('application/octet-stream', 'ico'),
        (None, 'ico'),
    ])
    def test__extension_for_content_type(self, content_type: str | None, extension: str) -> None:
        assert extension_for_content_type(content_type) == extension

    def test__media_type__strips_parameters(self) -> None:
        assert media_type('Image/PNG; q=1') == 'image/png'
        assert media_type('') is None

    def test__build_favicon_key__format(self) -> None:
        key = build_favicon_key('example.com', 'image/png', now_ms=1700000000123)
        assert key == 'favicons/example.com-1700000000123.png'


class TestFindFaviconUrl:
    """Tests for favicon discovery order."""

    async def test__find_favicon_url__default_icon_found(self) -> None:
        with respx.mock() as mock:
            mock.head('https://example.com/favicon.ico').mock(
                return_value=httpx.Response(200),
            )
            result = await find_favicon_url('https://example.com/some/page')

        assert result == 'https://example.com/favicon.ico'

    async def test__find_favicon_url__falls_back_to_link(self) -> None:
        with respx.mock() as mock:
            mock.head('https://example.com/favicon.ico').mock(
                return_value=httpx.Response(404),
            )
            mock.get('https://example.com/').mock(
                return_value=httpx.Response(
                    200, html='<html><head><link rel="icon" href="/f.png"></head></html>',
                ),
            )
            result = await find_favicon_url('https://example.com/')

        assert result == 'https://example.com/f.png'

    async def test__find_favicon_url__no_link(self) -> None:
        with respx.mock() as mock:
            mock.head('https://example.com/favicon.ico').mock(
                return_value=httpx.Response(404),
            )
            mock.get('https://example.com/').mock(
                return_value=httpx.Response(200, html='<html><head></head></html>'),
            )
            with pytest.raises(FaviconNotFoundError, match='no icon'):
                await find_favicon_url('https://example.com/')

    async def test__find_favicon_url__page_unreachable(self) -> None:
        with respx.mock() as mock:
            mock.head('https://example.com/favicon.ico').mock(
                side_effect=httpx.ConnectError('down'),
            )
            mock.get('https://example.com/').mock(side_effect=httpx.ConnectError('down'))
            with pytest.raises(FaviconNotFoundError, match='page fetch failed'):
                await find_favicon_url('https://example.com/')

    async def test__find_favicon_url__not_a_url(self) -> None:
        with pytest.raises(FaviconNotFoundError):
            await find_favicon_url('not a url')


class TestResolveFavicon:
    """Tests for downloading and storing the favicon."""

    async def test__resolve_favicon__default_icon(self, blob_store: LocalBlobStore) -> None:
        with respx.mock() as mock:
            mock.head('https://example.com/favicon.ico').mock(
                return_value=httpx.Response(200),
            )
            mock.get('https://example.com/favicon.ico').mock(
                return_value=httpx.Response(
                    200, content=ICO_BYTES, headers={'content-type': 'image/x-icon'},
                ),
            )
            key = await resolve_favicon('https://example.com/page', blob_store)

        assert re.fullmatch(r'favicons/example\.com-\d+\.ico', key)
        stored = await blob_store.get(key)
        assert stored.data == ICO_BYTES
        assert stored.content_type == 'image/x-icon'

    async def test__resolve_favicon__link_icon(self, blob_store: LocalBlobStore) -> None:
        with respx.mock() as mock:
            mock.head('https://example.com/favicon.ico').mock(
                return_value=httpx.Response(404),
            )
            mock.get('https://example.com/').mock(
                return_value=httpx.Response(
                    200, html='<html><head><link rel="icon" href="/f.png"></head></html>',
                ),
            )
            icon_route = mock.get('https://example.com/f.png').mock(
                return_value=httpx.Response(
                    200, content=PNG_BYTES, headers={'content-type': 'image/png'},
                ),
            )
            key = await resolve_favicon('https://example.com/', blob_store)

        assert icon_route.called
        assert re.fullmatch(r'favicons/example\.com-\d+\.png', key)
        stored = await blob_store.get(key)
        assert stored.data == PNG_BYTES
        assert stored.content_type == 'image/png'

    async def test__resolve_favicon__missing_content_type_defaults_to_ico(
        self, blob_store: LocalBlobStore,
    ) -> None:
        with respx.mock() as mock:
            mock.head('https://example.com/favicon.ico').mock(
                return_value=httpx.Response(200),
            )
            mock.get('https://example.com/favicon.ico').mock(
                return_value=httpx.Response(200, content=ICO_BYTES),
            )
            key = await resolve_favicon('https://example.com/', blob_store)

        assert key.endswith('.ico')
        stored = await blob_store.get(key)
        assert stored.content_type == 'image/x-icon'

    async def test__resolve_favicon__not_found(self, blob_store: LocalBlobStore) -> None:
        with respx.mock() as mock:
            mock.head('https://example.com/favicon.ico').mock(
                return_value=httpx.Response(404),
            )
            mock.get('https://example.com/').mock(
                return_value=httpx.Response(200, html='<html></html>'),
            )
            key = await resolve_favicon('https://example.com/', blob_store)

        assert key is None
        assert await blob_store.list_keys() == []

    async def test__resolve_favicon__download_fails(self, blob_store: LocalBlobStore) -> None:
        with respx.mock() as mock:
            mock.head('https://example.com/favicon.ico').mock(
                return_value=httpx.Response(200),
            )
            mock.get('https://example.com/favicon.ico').mock(
                return_value=httpx.Response(403),
            )
            key = await resolve_favicon('https://example.com/', blob_store)

        assert key is None
        assert await blob_store.list_keys() == []


class TestMalformedUrls:
    """Unparseable page URLs never escape as exceptions."""

    async def test__find_favicon_url__malformed_url(self) -> None:
        with pytest.raises(FaviconNotFoundError, match='malformed URL'):
            await find_favicon_url('http://[oops')

    async def test__resolve_favicon__malformed_url(self, blob_store: LocalBlobStore) -> None:
        assert await resolve_favicon('http://[oops', blob_store) is None
        assert await blob_store.list_keys() == []

    async def test__resolve_favicon__control_character_url(
        self, blob_store: LocalBlobStore,
    ) -> None:
        with respx.mock() as mock:
            mock.head('https://example.com/favicon.ico').mock(return_value=httpx.Response(404))
            key = await resolve_favicon('https://example.com/a\x01b', blob_store)

        assert key is None


class TestFaviconKeyTime:
    """Tests for reading the capture time back out of a key."""

    def test__favicon_key_time__round_trip(self) -> None:
        key = build_favicon_key('example.com', 'image/png', now_ms=1700000000123)
        assert favicon_key_time(key) == datetime(2023, 11, 14, 22, 13, 20, 123000, tzinfo=UTC)

    def test__favicon_key_time__hyphenated_domain(self) -> None:
        key = build_favicon_key('my-site.example', None, now_ms=1000)
        assert favicon_key_time(key) == datetime(1970, 1, 1, 0, 0, 1, tzinfo=UTC)

    @pytest.mark.parametrize('key', ['favicons/no-timestamp.ico', 'snapshots/x-1.ico'])
    def test__favicon_key_time__unknown(self, key: str) -> None:
        assert favicon_key_time(key) is None
