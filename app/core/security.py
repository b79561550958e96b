"""Password hashing, JWT creation/verification and the auth cookie."""

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import bcrypt
import jwt
from fastapi import Response

from app.core.config import get_settings

if TYPE_CHECKING:
    from app.services.auth import AuthenticatedUser

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of the secret.
BCRYPT_MAX_BYTES = 72


class PasswordHashingError(Exception):
    """Hashing or verification failed inside bcrypt. Never carries the plaintext."""

    def __init__(self, message: str = "Error hashing the password") -> None:
        self.message = message
        super().__init__(message)


def _encode_secret(plain_password: str) -> bytes:
    if not isinstance(plain_password, str) or not plain_password:
        raise PasswordHashingError()
    return plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def _hash_sync(pw_bytes: bytes, rounds: int) -> str:
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


async def hash_password(plain_password: str, rounds: int | None = None) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    pw_bytes = _encode_secret(plain_password)
    cost = rounds if rounds is not None else get_settings().BCRYPT_ROUNDS
    try:
        return await asyncio.to_thread(_hash_sync, pw_bytes, cost)
    except (ValueError, TypeError) as e:
        logger.error("Error hashing the password: %s", type(e).__name__)
        raise PasswordHashingError() from None


async def verify_password(plain_password: str, hashed: str) -> bool:
    """
    Verify a plain password against a stored hash.

    Returns False on a mismatch. A malformed stored hash is an internal fault
    and raises PasswordHashingError instead.
    """
    if not isinstance(hashed, str) or not hashed:
        raise PasswordHashingError("Error comparing passwords")
    if not plain_password:
        return False
    pw_bytes = plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    try:
        return await asyncio.to_thread(bcrypt.checkpw, pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError) as e:
        logger.error("Error comparing passwords: %s", type(e).__name__)
        raise PasswordHashingError("Error comparing passwords") from None


def create_access_token(user: "AuthenticatedUser") -> str:
    """Create a JWT access token with sub (user id), email, role, iat and exp."""
    settings = get_settings()
    now = datetime.now(UTC)
    expire = now + timedelta(minutes=settings.JWT_EXPIRE_MINUTES)
    payload: dict[str, Any] = {
        "sub": str(user.id),
        "email": user.email,
        "role": user.role,
        "exp": expire,
        "iat": now,
    }
    return jwt.encode(
        payload,
        settings.JWT_SECRET.get_secret_value(),
        algorithm=settings.JWT_ALGORITHM,
    )


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and validate JWT; return payload (sub, email, role, exp, iat).
    Raises jwt.PyJWTError on invalid or expired token.

    No route here reads the cookie back; this is for services that consume it.
    """
    settings = get_settings()
    return jwt.decode(
        token,
        settings.JWT_SECRET.get_secret_value(),
        algorithms=[settings.JWT_ALGORITHM],
    )


def set_auth_cookie(response: Response, token: str) -> None:
    """Attach the signed token as an HttpOnly, SameSite=strict cookie."""
    settings = get_settings()
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        max_age=settings.AUTH_COOKIE_MAX_AGE_SECONDS,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="strict",
    )


def clear_auth_cookie(response: Response) -> None:
    settings = get_settings()
    response.delete_cookie(
        key=settings.AUTH_COOKIE_NAME,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="strict",
    )
