"""Service layer for signed, time-limited session tokens."""
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import jwt

from core.config import Settings
from services.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionClaims:
    """Identity carried by a valid session token."""

    user_id: int
    email: str


def issue_session_token(
    user_id: int,
    email: str,
    settings: Settings,
    now: datetime | None = None,
) -> str:
    """
    Issue a signed session token valid for `settings.session_ttl_days`.

    Args:
        user_id: ID of the authenticated user.
        email: Email of the authenticated user.
        settings: Application settings holding the signing secret.
        now: Issue time; defaults to the current time.

    Returns:
        Encoded JWT.

    Raises:
        ConfigurationError: If JWT_SECRET is not configured.
    """
    if not settings.jwt_secret:
        raise ConfigurationError("JWT_SECRET environment variable is required")

    issued_at = now or datetime.now(UTC)
    payload = {
        "sub": str(user_id),
        "email": email,
        "iat": issued_at,
        "exp": issued_at + timedelta(days=settings.session_ttl_days),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_session_token(
    token: str,
    settings: Settings,
    now: datetime | None = None,
) -> SessionClaims | None:
    """
    Verify a session token and return its claims.

    Every failure (bad signature, malformed payload, expiry, missing secret)
    returns None. Callers cannot tell why a token was rejected; the reason is
    only logged server-side.

    Args:
        token: Encoded JWT.
        settings: Application settings holding the signing secret.
        now: Clock used for the expiry check; defaults to the current time.
    """
    if not settings.jwt_secret:
        logger.error("JWT_SECRET is not configured; rejecting session token")
        return None

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp"], "verify_exp": False},
        )
    except jwt.PyJWTError as e:
        logger.debug("Session token rejected: %s", e)
        return None

    # Expiry is checked here rather than by PyJWT so the clock can be supplied
    current = now or datetime.now(UTC)
    expires_at = payload.get("exp")
    if not isinstance(expires_at, int | float) or current.timestamp() >= expires_at:
        logger.debug("Session token rejected: expired")
        return None

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        logger.debug("Session token rejected: non-integer subject")
        return None

    return SessionClaims(user_id=user_id, email=str(payload.get("email", "")))
