"""
Security Module

Password hashing (bcrypt) and signed, time-limited session tokens (JWT, HS256).
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

import bcrypt
from jose import JWTError, jwt
from pydantic import ValidationError

from patentflow.core.config import settings
from patentflow.schemas.auth import SessionUser

logger = logging.getLogger(__name__)


def get_password_hash(password: str) -> str:
    """Hash a plain-text password with a per-password bcrypt salt."""
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: Optional[str]) -> bool:
    """Check a plain-text password against its stored bcrypt hash."""
    if not plain_password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def create_session_token(
    user_id: str,
    email: str,
    name: Optional[str],
    roles: Iterable[str],
    expires_delta: Optional[timedelta] = None,
    now: Optional[datetime] = None,
) -> str:
    """
    Sign a session claim set for the given identity.

    Args:
        user_id: Stored as the `sub` claim
        email: User's email address
        name: Display name
        roles: Role values held by the user
        expires_delta: Lifetime of the token (default: SESSION_EXPIRE_MINUTES)
        now: Issue time, defaults to the server clock

    Returns:
        str: Encoded JWT
    """
    issued_at = now or datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.SESSION_EXPIRE_MINUTES)
    claims = {
        "sub": user_id,
        "email": email,
        "name": name,
        "roles": [getattr(role, "value", role) for role in roles],
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + expires_delta).timestamp()),
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def verify_session_token(token: Optional[str]) -> Optional[SessionUser]:
    """
    Decode a session token.

    Fails closed: a missing, malformed, tampered or expired token yields None
    and never raises to the caller.
    """
    if not token:
        return None
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return SessionUser(
            id=payload.get("sub"),
            email=payload.get("email"),
            name=payload.get("name"),
            roles=payload.get("roles") or [],
        )
    except (JWTError, ValidationError) as exc:
        logger.debug("Rejected session token: %s", exc)
        return None
