"""Endpoints serving archived snapshots and favicons."""
from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_blob_store
from services import bookmark_service
from services.storage import BlobStore

router = APIRouter(tags=["media"])

FAVICON_CACHE_CONTROL = "public, max-age=86400"
# Archived pages are untrusted HTML served from our origin
SNAPSHOT_CSP = "sandbox"


@router.get("/snapshot/{bookmark_id}")
async def get_snapshot(
    bookmark_id: int,
    db: AsyncSession = Depends(get_async_session),
    store: BlobStore = Depends(get_blob_store),
) -> Response:
    """Return the stored HTML snapshot of a bookmark."""
    bookmark = await bookmark_service.get_bookmark(db, bookmark_id)
    if bookmark is None or not bookmark.snapshot_key:
        raise HTTPException(status_code=404, detail="Snapshot not found")

    snapshot = await store.get(bookmark.snapshot_key)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="Snapshot not found")

    return Response(
        content=snapshot.data,
        media_type="text/html",
        headers={"Content-Security-Policy": SNAPSHOT_CSP},
    )


@router.get("/favicon/{bookmark_id}")
async def get_favicon(
    bookmark_id: int,
    db: AsyncSession = Depends(get_async_session),
    store: BlobStore = Depends(get_blob_store),
) -> Response:
    """Return the stored favicon of a bookmark with its original content type."""
    bookmark = await bookmark_service.get_bookmark(db, bookmark_id)
    if bookmark is None or not bookmark.favicon_key:
        raise HTTPException(status_code=404, detail="Favicon not found")

    favicon = await store.get(bookmark.favicon_key)
    if favicon is None:
        raise HTTPException(status_code=404, detail="Favicon not found")

    return Response(
        content=favicon.data,
        media_type=favicon.content_type,
        headers={"Cache-Control": FAVICON_CACHE_CONTROL},
    )
