"""Bookmark CRUD endpoints."""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_blob_store, get_settings
from core.config import Settings
from schemas.bookmark import (
    BookmarkCreate,
    BookmarkResponse,
    BookmarkUpdate,
    ErrorResponse,
)
from services import bookmark_service
from services.storage import BlobStore

router = APIRouter(prefix="/api/bookmarks", tags=["bookmarks"])


@router.get("", response_model=list[BookmarkResponse])
async def list_bookmarks(
    q: str | None = Query(default=None, description="Search title, description, tags and url"),
    include_archived: bool = Query(default=False, description="Include archived bookmarks"),
    db: AsyncSession = Depends(get_async_session),
) -> list[BookmarkResponse]:
    """List bookmarks, newest first."""
    bookmarks = await bookmark_service.list_bookmarks(
        db, query=q, include_archived=include_archived,
    )
    return [BookmarkResponse.model_validate(b) for b in bookmarks]


@router.post(
    "",
    response_model=BookmarkResponse,
    status_code=201,
    responses={409: {"model": ErrorResponse, "description": "URL already bookmarked"}},
)
async def create_bookmark(
    data: BookmarkCreate,
    db: AsyncSession = Depends(get_async_session),
    store: BlobStore = Depends(get_blob_store),
    settings: Settings = Depends(get_settings),
) -> BookmarkResponse:
    """
    Create a bookmark.

    Title, snapshot and favicon are captured before responding, so latency includes
    the outbound fetches. Capture failures do not fail the request.
    """
    bookmark = await bookmark_service.create_bookmark(
        db, store, data, timeout=settings.fetch_timeout,
    )
    return BookmarkResponse.model_validate(bookmark)


@router.put("/{bookmark_id}", response_model=BookmarkResponse)
async def update_bookmark(
    bookmark_id: int,
    data: BookmarkUpdate,
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkResponse:
    """Update description, tags and archived flag."""
    bookmark = await bookmark_service.update_bookmark(db, bookmark_id, data)
    if bookmark is None:
        raise HTTPException(status_code=404, detail="Bookmark not found")
    return BookmarkResponse.model_validate(bookmark)


@router.delete("/{bookmark_id}", status_code=204)
async def delete_bookmark(
    bookmark_id: int,
    db: AsyncSession = Depends(get_async_session),
    store: BlobStore = Depends(get_blob_store),
) -> None:
    """Delete a bookmark and its stored snapshot and favicon. Unknown IDs are a no-op."""
    await bookmark_service.delete_bookmark(db, store, bookmark_id)
