"""MFA service - TOTP enrollment and verification for both realms.

Secrets are stored Fernet-encrypted on the account row (``totp_secret``)
and only become active once a first code has been confirmed.
"""

import pyotp
from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.core.encryption import decrypt_token, encrypt_token


# =============================================================================
# TOTP Functions
# =============================================================================


def generate_totp_secret() -> str:
    """Generate a random base32 TOTP secret (32 characters)."""
    return pyotp.random_base32()


def get_totp_provisioning_uri(secret: str, email: str) -> str:
    """otpauth:// URI for authenticator apps (rendered as a QR code by the front-end)."""
    totp = pyotp.TOTP(secret)
    return totp.provisioning_uri(name=email, issuer_name=settings.TOTP_ISSUER)


def verify_totp_code(secret: str, code: str) -> bool:
    """
    Verify a 6-digit TOTP code.

    Allows 1 time step tolerance (±30 seconds) for clock drift.
    """
    if not secret or not code:
        return False

    code = code.strip().replace(" ", "").replace("-", "")
    if len(code) != 6 or not code.isdigit():
        return False

    return pyotp.TOTP(secret).verify(code, valid_window=1)


# =============================================================================
# Enrollment (accounts are Admin or Client rows)
# =============================================================================


def stored_secret(account) -> str | None:
    if not account.totp_secret:
        return None
    return decrypt_token(account.totp_secret)


def setup_totp(db: Session, account) -> tuple[str, str]:
    """
    Start TOTP setup.

    Returns:
        (secret, provisioning_uri). The secret is stored but not enabled
        until ``confirm_totp`` succeeds.
    """
    secret = generate_totp_secret()
    account.totp_secret = encrypt_token(secret)
    account.totp_enabled = False
    db.commit()
    return secret, get_totp_provisioning_uri(secret, account.email)


def confirm_totp(db: Session, account, code: str) -> bool:
    """Enable TOTP once the first code from the authenticator app checks out."""
    secret = stored_secret(account)
    if not secret or not verify_totp_code(secret, code):
        return False
    account.totp_enabled = True
    db.commit()
    return True


def verify_account_code(account, code: str) -> bool:
    secret = stored_secret(account)
    return bool(secret) and verify_totp_code(secret, code)


def disable_totp(db: Session, account) -> None:
    """Drop the secret; the account has to enroll again before its next verified session."""
    account.totp_enabled = False
    account.totp_secret = None
    account.token_version += 1
    db.commit()
