import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from jose import jwt, JWTError, ExpiredSignatureError
from passlib.context import CryptContext

from car_reliability.core.config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_HOURS
from car_reliability.core.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

BCRYPT_MAX_BYTES = 72

# Older rows may carry passlib-formatted hashes; new hashes use bcrypt directly
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def _password_bytes(password: str) -> bytes:
    password_bytes = password.encode("utf-8")
    if len(password_bytes) > BCRYPT_MAX_BYTES:
        logger.warning("Password exceeds 72 bytes, truncating before hashing (validation should have caught this)")
        password_bytes = password_bytes[:BCRYPT_MAX_BYTES]
    return password_bytes


def hash_password(password: str) -> str:
    """
    Hash a password with bcrypt.

    Passwords longer than bcrypt's 72-byte limit are truncated; request
    schemas reject them before they get here.
    """
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: Optional[str]) -> bool:
    """Verify a password against a bcrypt (or passlib bcrypt) hash."""
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(_password_bytes(password), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        try:
            return pwd_context.verify(password, hashed)
        except (ValueError, TypeError) as e:
            logger.error(f"Password verification failed: {e}")
            return False


def create_access_token(user_id: int, email: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Issue a signed session token for a user.

    Claims: ``sub`` (user id as string), ``email``, ``exp``.
    """
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS))
    to_encode = {"sub": str(user_id), "email": email, "exp": expire}
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Verify signature and expiry of a session token.

    Returns:
        Dict with ``user_id`` (int) and ``email``

    Raises:
        AuthenticationError: token missing, malformed, expired or without subject
    """
    if not token:
        raise AuthenticationError("Access token required", code="token_missing")
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        raise AuthenticationError("Token expired", code="token_expired")
    except JWTError:
        raise AuthenticationError("Invalid token", code="token_invalid")

    subject = payload.get("sub")
    try:
        user_id = int(subject)
    except (TypeError, ValueError):
        raise AuthenticationError("Invalid token", code="token_invalid")

    return {"user_id": user_id, "email": payload.get("email")}


def generate_opaque_token() -> str:
    """Random bearer-style secret for unauthenticated premium checks."""
    return secrets.token_urlsafe(32)
