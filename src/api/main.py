"""FastAPI application entry point."""
import logging
from pathlib import Path

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from api.routers import auth, bookmarks, health, media
from core.auth import SessionAuthMiddleware
from core.config import get_settings
from services.bookmark_service import DuplicateUrlError
from services.storage import StorageError

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        """Process request and add security headers to response."""
        response = await call_next(request)
        # Prevent MIME type sniffing of stored blobs
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response


app_settings = get_settings()

app = FastAPI(
    title="Bookmarks",
    description="Personal bookmarks with page snapshots and favicons.",
    version="0.1.0",
)


@app.exception_handler(DuplicateUrlError)
async def duplicate_url_exception_handler(
    _request: Request, exc: DuplicateUrlError,
) -> JSONResponse:
    """Report an already-bookmarked URL as a conflict."""
    logger.info("Rejected duplicate bookmark for %s", exc.url)
    return JSONResponse(status_code=409, content={"error": "URL already bookmarked"})


@app.exception_handler(StorageError)
@app.exception_handler(SQLAlchemyError)
async def storage_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Hide database and blob store failures behind a generic 500."""
    logger.error(
        "Storage failure on %s %s", request.method, request.url.path, exc_info=exc,
    )
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# Session check runs inside CORS so preflight responses are never redirected
app.add_middleware(SessionAuthMiddleware)

app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=app_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(bookmarks.router)
app.include_router(media.router)

# Everything the API does not handle falls through to the static client
if Path(app_settings.static_dir).is_dir():
    app.mount(
        "/",
        StaticFiles(directory=app_settings.static_dir, html=True),
        name="static",
    )
