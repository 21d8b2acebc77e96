"""Password login, logout and the login page."""
import logging
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse, JSONResponse, RedirectResponse
from pydantic import BaseModel

from api.dependencies import get_settings
from core.auth import LOGIN_PATH, clear_session_cookie, set_session_cookie, verify_password
from core.config import Settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

LOGIN_PAGE = "login.html"


class LoginRequest(BaseModel):
    """Login form body."""

    password: str


@router.post("/auth/login")
async def login(
    data: LoginRequest,
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    """Check the password and start a session."""
    if not verify_password(data.password, settings):
        logger.warning("Rejected login attempt")
        return JSONResponse(status_code=401, content={"error": "Invalid password"})

    response = JSONResponse(content={"success": True})
    set_session_cookie(response, settings)
    return response


@router.get("/logout")
async def logout(settings: Settings = Depends(get_settings)) -> RedirectResponse:
    """End the session and send the browser back to the login page."""
    response = RedirectResponse(LOGIN_PATH, status_code=302)
    clear_session_cookie(response, settings)
    return response


@router.get(LOGIN_PATH, include_in_schema=False)
async def login_page(settings: Settings = Depends(get_settings)) -> FileResponse:
    """Serve the static login page."""
    page = Path(settings.static_dir) / LOGIN_PAGE
    if not page.is_file():
        raise HTTPException(status_code=404, detail="Not found")
    return FileResponse(page, media_type="text/html")
