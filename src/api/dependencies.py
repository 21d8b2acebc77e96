"""FastAPI dependencies for injection."""
from core.config import get_settings
from db.session import get_async_session
from services.storage import get_blob_store

__all__ = [
    "get_async_session",
    "get_blob_store",
    "get_settings",
]
