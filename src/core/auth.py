"""Access guard: session token extraction and validation for protected routes."""
from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.config import Settings, get_settings
from services.token_service import SessionClaims, decode_session_token

SESSION_COOKIE_NAME = "token"

# HTTP Bearer token scheme (auto_error=False so the cookie can be tried next)
security = HTTPBearer(auto_error=False)


def extract_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None,
) -> str | None:
    """
    Locate the candidate session token for a request.

    The `Authorization: Bearer` header takes precedence over the `token` cookie.
    """
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    cookie = request.cookies.get(SESSION_COOKIE_NAME)
    return cookie or None


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    settings: Settings = Depends(get_settings),
) -> SessionClaims:
    """
    Dependency that validates the session token and returns its claims.

    Pure computation: no database access. Missing, malformed, forged and
    expired tokens all produce the same 401 response.
    """
    token = extract_token(request, credentials)
    claims = decode_session_token(token, settings) if token else None
    if claims is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return claims


def set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    """Attach the session token as an httpOnly, SameSite=Lax cookie."""
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.session_ttl_seconds,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    """Expire the session cookie on the client."""
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value="",
        max_age=0,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
    )
