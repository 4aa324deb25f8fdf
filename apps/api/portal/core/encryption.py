"""Fernet encryption for OAuth tokens and TOTP secrets stored in the database."""

from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken

from portal.core.config import settings


@lru_cache(maxsize=1)
def _cipher() -> Fernet:
    if not settings.TOKEN_ENCRYPTION_KEY:
        raise RuntimeError(
            "TOKEN_ENCRYPTION_KEY not configured. "
            'Generate with: python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"'
        )
    return Fernet(settings.TOKEN_ENCRYPTION_KEY.encode())


def encrypt_token(value: str) -> str:
    """Encrypt a secret for storage; empty values stay empty."""
    if not value:
        return ""
    return _cipher().encrypt(value.encode()).decode()


def decrypt_token(stored: str) -> str:
    if not stored:
        return ""
    try:
        return _cipher().decrypt(stored.encode()).decode()
    except InvalidToken:
        raise ValueError("Stored secret cannot be decrypted with the configured key")
