"""Security utilities: password hashing, session tokens and OAuth state."""

import secrets
from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt
from passlib.context import CryptContext

from portal.core.config import settings


pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


# =============================================================================
# Passwords
# =============================================================================

def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(plain_password, password_hash)


def generate_password() -> str:
    """Random 16-char hex password for accounts created by staff."""
    return secrets.token_hex(8)


# =============================================================================
# Session Token (JWT in cookie)
# =============================================================================

def create_session_token(
    subject_id: UUID,
    realm: str,
    role: str,
    token_version: int,
    totp_verified: bool = False,
) -> str:
    """
    Create signed session JWT for one auth realm (admin or client).

    Always signs with current secret (JWT_SECRET). ``totp_verified`` is False
    until the second factor has been checked for accounts that enabled it.
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(subject_id),
        "realm": realm,
        "role": role,
        "token_version": token_version,
        "totp_verified": totp_verified,
        "iat": now,
        "exp": now + timedelta(hours=settings.JWT_EXPIRES_HOURS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")


def decode_session_token(token: str) -> dict:
    """
    Decode and verify session JWT.

    Tries current secret first, then previous (for rotation support).

    Raises:
        jwt.InvalidTokenError: If token invalid with all secrets
    """
    last_error = None
    for secret in settings.jwt_secrets:
        try:
            return jwt.decode(token, secret, algorithms=["HS256"])
        except jwt.InvalidTokenError as e:
            last_error = e
            continue
    raise last_error  # type: ignore


# =============================================================================
# OAuth State
# =============================================================================

def generate_oauth_state() -> str:
    """Generate cryptographically random state (32 bytes, URL-safe base64)."""
    return secrets.token_urlsafe(32)


def verify_oauth_state(stored_state: str | None, received_state: str | None) -> bool:
    if not stored_state or not received_state:
        return False
    return secrets.compare_digest(stored_state, received_state)
