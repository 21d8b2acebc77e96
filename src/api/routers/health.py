"""Health check endpoints."""
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_blob_store
from services.storage import BlobStore, StorageError


logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    database: str
    storage: str


@router.get("/health", response_model=HealthResponse)
async def health_check(
    db: AsyncSession = Depends(get_async_session),
    store: BlobStore = Depends(get_blob_store),
) -> HealthResponse:
    """Check database and blob store health."""
    db_status = "healthy"
    try:
        await db.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Database health check failed")
        db_status = "unhealthy"

    storage_status = "healthy"
    try:
        await store.ping()
    except StorageError:
        logger.exception("Storage health check failed")
        storage_status = "unhealthy"

    healthy = db_status == "healthy" and storage_status == "healthy"
    return HealthResponse(
        status="healthy" if healthy else "degraded",
        database=db_status,
        storage=storage_status,
    )
