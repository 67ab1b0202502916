"""Pydantic schemas for registration, login, and session responses."""
from pydantic import BaseModel, ConfigDict, field_validator

from schemas.validators import validate_email, validate_new_password


class RegisterRequest(BaseModel):
    """Schema for creating an account."""

    email: str
    password: str

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        """Validate and normalize the email."""
        return validate_email(v)

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        """Enforce the minimum password length."""
        return validate_new_password(v)


class LoginRequest(BaseModel):
    """Schema for logging in."""

    email: str
    password: str

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        """Validate and normalize the email."""
        return validate_email(v)

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        """Require a non-empty password."""
        if not v:
            raise ValueError("Password is required")
        return v


class UserResponse(BaseModel):
    """Public view of a user."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str


class AuthResponse(BaseModel):
    """
    Response for register/login.

    The token is also set as an httpOnly cookie; it is returned in the body for
    clients that authenticate with the Authorization header instead.
    """

    message: str
    user: UserResponse
    token: str


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str
