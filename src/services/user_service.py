"""Service layer for user registration, password hashing, and login."""
import logging

import bcrypt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models.user import User
from services.exceptions import DuplicateEmailError, InvalidCredentialsError

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of input
BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password with a fresh bcrypt salt."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(_password_bytes(password), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored hash. Malformed hashes never verify."""
    try:
        return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Look up a user by (case-insensitive) email."""
    result = await db.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


async def create_user(
    db: AsyncSession,
    email: str,
    password: str,
    rounds: int = 12,
) -> User:
    """
    Register a new user.

    Args:
        db: Database session.
        email: Email address (stored lower-cased).
        password: Plaintext password; only its bcrypt hash is stored.
        rounds: bcrypt cost factor.

    Returns:
        The created user.

    Raises:
        DuplicateEmailError: If an account already uses this email.

    Note:
        Does not commit. Caller (session generator) handles commit at request end.
    """
    email = email.lower()
    if await get_user_by_email(db, email) is not None:
        raise DuplicateEmailError(email)

    user = User(email=email, password_hash=hash_password(password, rounds))
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as e:
        # Race condition: another request registered the email between SELECT and INSERT
        await db.rollback()
        raise DuplicateEmailError(email) from e
    await db.refresh(user)
    logger.info("user_registered", extra={"user_id": user.id})
    return user


async def authenticate_user(db: AsyncSession, email: str, password: str) -> User:
    """
    Return the user matching the credentials.

    Raises:
        InvalidCredentialsError: For an unknown email or a wrong password alike.
    """
    user = await get_user_by_email(db, email)
    if user is None or not verify_password(password, user.password_hash):
        raise InvalidCredentialsError
    return user
