"""User endpoints."""
from fastapi import APIRouter, Depends

from api.dependencies import get_current_user
from schemas.auth import UserResponse
from services.token_service import SessionClaims


router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: SessionClaims = Depends(get_current_user)) -> UserResponse:
    """Get the identity carried by the caller's session token."""
    return UserResponse(id=current_user.user_id, email=current_user.email)
