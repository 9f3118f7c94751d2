"""Password hashing, access tokens and password-reset tokens."""

import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt
from passlib.context import CryptContext

from .config import settings

JWT_ALGORITHM = "HS256"
TOKEN_COOKIE_NAME = "jwt"

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.password_hash_rounds,
)


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from backends that drop the offset."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    return pwd_context.verify(password, password_hash)


def create_access_token(user_id: Any, issued_at: Optional[datetime] = None) -> str:
    """
    Sign an access token for a user.

    Args:
        user_id: Identifier stored in the ``sub`` claim
        issued_at: Override for the ``iat`` claim, defaults to now

    Returns:
        Encoded HS256 JWT
    """
    issued_at = issued_at or utcnow()
    payload = {
        "sub": str(user_id),
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + timedelta(days=settings.jwt_expires_in_days)).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Verify signature and expiry of an access token.

    Raises:
        jwt.ExpiredSignatureError: If the token is past its ``exp``
        jwt.InvalidTokenError: For any other malformed or forged token
    """
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[JWT_ALGORITHM],
        options={"require": ["sub", "iat", "exp"]},
    )


def hash_reset_token(token: str) -> str:
    """SHA-256 hex digest; only this digest of a reset token is ever stored."""
    return hashlib.sha256(token.encode()).hexdigest()


def generate_reset_token() -> tuple[str, str]:
    """Return a fresh ``(plaintext, digest)`` pair for a password reset."""
    token = secrets.token_hex(32)
    return token, hash_reset_token(token)
