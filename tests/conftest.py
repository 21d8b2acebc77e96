"""Pytest fixtures for testing."""
import ipaddress
import os
import socket
from collections.abc import AsyncGenerator, Generator
from pathlib import Path

# Settings are read at import time by db.session and api.main
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["AUTH_PASSWORD"] = ""
os.environ["STORAGE_BACKEND"] = "local"

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from models.base import Base  # noqa: E402
from services.storage import LocalBlobStore  # noqa: E402

# Address returned for every hostname so the SSRF guard sees a public host
PUBLIC_TEST_IP = "93.184.216.34"


@pytest.fixture(autouse=True)
def fake_dns(monkeypatch: pytest.MonkeyPatch) -> None:
    """
    Resolve hostnames without touching the network.

    IP literals resolve to themselves so private-address checks still work.
    """
    def getaddrinfo(host: str, *_args: object, **_kwargs: object) -> list:
        try:
            ip = str(ipaddress.ip_address(host))
        except ValueError:
            ip = PUBLIC_TEST_IP
        return [(socket.AF_INET, socket.SOCK_STREAM, socket.IPPROTO_TCP, "", (ip, 0))]

    monkeypatch.setattr("services.url_scraper.socket.getaddrinfo", getaddrinfo)


@pytest.fixture
async def async_engine() -> AsyncGenerator[AsyncEngine]:
    """Create a fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(async_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Create an async session on the test database."""
    session_factory = async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session


@pytest.fixture
def blob_store(tmp_path: Path) -> LocalBlobStore:
    """Blob store rooted in the test's temporary directory."""
    return LocalBlobStore(tmp_path / "blobs")


@pytest.fixture
def clear_settings_cache() -> Generator[None]:
    """Drop cached settings before and after a test that changes the environment."""
    from core.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
async def client(
    db_session: AsyncSession,
    blob_store: LocalBlobStore,
    clear_settings_cache: None,  # noqa: ARG001
) -> AsyncGenerator[AsyncClient]:
    """Create a test client with database session and blob store overrides."""
    from api.main import app
    from db.session import get_async_session
    from services.storage import get_blob_store

    async def override_get_async_session() -> AsyncGenerator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_async_session
    app.dependency_overrides[get_blob_store] = lambda: blob_store

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()
