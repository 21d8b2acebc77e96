"""Password login backed by a signed session cookie."""
import hashlib
import hmac
import secrets

from fastapi import Request, Response
from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from core.config import Settings, get_settings


SESSION_COOKIE_NAME = "session"
LOGIN_PATH = "/login"

# Paths reachable without a session
PUBLIC_PATHS = frozenset({LOGIN_PATH, "/auth/login"})


def session_token(settings: Settings) -> str:
    """
    Derive the session cookie value for the configured password.

    HMAC-SHA256 of the password keyed by the session secret: stable across restarts,
    and rotating either value invalidates existing sessions.
    """
    return hmac.new(
        settings.session_secret.encode(),
        settings.auth_password.encode(),
        hashlib.sha256,
    ).hexdigest()


def verify_password(candidate: str, settings: Settings) -> bool:
    """Constant-time comparison of a submitted password with the configured one."""
    if not settings.auth_enabled:
        return False
    return secrets.compare_digest(candidate.encode(), settings.auth_password.encode())


def is_authenticated(request: Request, settings: Settings) -> bool:
    """Check the request's session cookie. Always True when login is disabled."""
    if not settings.auth_enabled:
        return True
    cookie = request.cookies.get(SESSION_COOKIE_NAME)
    if not cookie:
        return False
    return secrets.compare_digest(cookie.encode(), session_token(settings).encode())


def set_session_cookie(response: Response, settings: Settings) -> None:
    """Attach a fresh session cookie to `response`."""
    response.set_cookie(
        SESSION_COOKIE_NAME,
        session_token(settings),
        max_age=settings.session_max_age,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="strict",
        path="/",
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    """Expire the session cookie on the client."""
    response.delete_cookie(
        SESSION_COOKIE_NAME,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="strict",
        path="/",
    )


class SessionAuthMiddleware(BaseHTTPMiddleware):
    """
    Redirect requests without a valid session cookie to the login page.

    Inactive when no password is configured. Settings are read per request so that
    configuration changes (and test overrides) take effect without rebuilding the app.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        """Let public paths and authenticated requests through, redirect the rest."""
        settings = get_settings()
        if request.url.path in PUBLIC_PATHS or is_authenticated(request, settings):
            return await call_next(request)
        return RedirectResponse(LOGIN_PATH, status_code=302)
