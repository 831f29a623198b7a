"""
Authentication utilities: Password hashing and session token management
"""

import logging
import jwt
from passlib.context import CryptContext
from typing import Optional
from config import settings

logger = logging.getLogger(__name__)

# Password hashing context
pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto"
)

# Token configuration
ALGORITHM = "HS256"
BEARER_PREFIX = "Bearer "


def hash_password(password: str) -> str:
    """Hash a password using argon2"""
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash"""
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        # Unrecognized or corrupt hash
        return False


def issue_token(user_id: str, username: str, now_millis: int) -> str:
    """
    Create a session token carrying (user_id, username, issued-at millis).

    The token is signed but carries no expiry; callers that want one must
    enforce it themselves from `issued_at_ms`.

    Raises:
        ValueError: If JWT_SECRET_KEY is not set
    """
    if not settings.jwt_secret_key:
        raise ValueError("JWT_SECRET_KEY is not set. Cannot create session token.")

    payload = {
        "sub": str(user_id),
        "username": username,
        "issued_at_ms": int(now_millis),
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Decode a session token. Returns None if invalid."""
    if not settings.jwt_secret_key:
        logger.error("JWT_SECRET_KEY is not set. Treating every session token as invalid.")
        return None

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[ALGORITHM],
            options={"require": ["sub"]},
        )
    except jwt.InvalidTokenError:
        return None

    if not payload.get("sub"):
        return None
    return payload


def _token_from_header(header_value: Optional[str]) -> Optional[str]:
    if not header_value or not isinstance(header_value, str):
        return None
    if not header_value.startswith(BEARER_PREFIX):
        return None
    return header_value[len(BEARER_PREFIX):]


def authenticate(header_value: Optional[str]) -> bool:
    """
    True if the Authorization header carries a well-formed session token.

    Only the credential itself is checked. Whether the user id inside still
    names an existing account is up to the caller.
    """
    token = _token_from_header(header_value)
    if not token:
        return False
    return decode_token(token) is not None


def extract_user_id(header_value: Optional[str]) -> Optional[str]:
    """Return the user id from an Authorization header, or None if it is malformed."""
    token = _token_from_header(header_value)
    if not token:
        return None
    payload = decode_token(token)
    if payload is None:
        return None
    return payload["sub"]
