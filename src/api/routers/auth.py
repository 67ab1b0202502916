"""Registration, login, and logout endpoints."""
import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_settings
from core.auth import clear_session_cookie, set_session_cookie
from core.config import Settings
from models.user import User
from schemas.auth import AuthResponse, LoginRequest, MessageResponse, RegisterRequest, UserResponse
from services import user_service
from services.exceptions import DuplicateEmailError, InvalidCredentialsError
from services.token_service import issue_session_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _start_session(
    response: Response,
    user: User,
    settings: Settings,
    message: str,
) -> AuthResponse:
    """Issue a session token for the user and set it as a cookie."""
    token = issue_session_token(user.id, user.email, settings)
    set_session_cookie(response, token, settings)
    return AuthResponse(
        message=message,
        user=UserResponse.model_validate(user),
        token=token,
    )


@router.post("/register", response_model=AuthResponse)
async def register(
    data: RegisterRequest,
    response: Response,
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> AuthResponse:
    """Create an account and start a session."""
    try:
        user = await user_service.create_user(
            db, data.email, data.password, rounds=settings.bcrypt_rounds,
        )
    except DuplicateEmailError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User already exists")
    return _start_session(response, user, settings, "User created successfully")


@router.post("/login", response_model=AuthResponse)
async def login(
    data: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> AuthResponse:
    """Verify credentials and start a session."""
    try:
        user = await user_service.authenticate_user(db, data.email, data.password)
    except InvalidCredentialsError:
        logger.info("login_failed")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )
    return _start_session(response, user, settings, "Login successful")


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    settings: Settings = Depends(get_settings),
) -> MessageResponse:
    """End the session on this client. Tokens are stateless; nothing is revoked server-side."""
    clear_session_cookie(response, settings)
    return MessageResponse(message="Logged out successfully")
