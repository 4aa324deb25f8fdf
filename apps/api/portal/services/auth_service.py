"""Credential checks and session lifecycle for the admin and client realms."""

import logging

from fastapi import Response
from sqlalchemy import func
from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.core.deps import ADMIN_COOKIE_NAME, CLIENT_COOKIE_NAME
from portal.core.security import (
    create_session_token,
    hash_password,
    verify_password,
)
from portal.db.enums import Realm
from portal.db.models import Admin, Client
from portal.db.types import utcnow

logger = logging.getLogger(__name__)

CLIENT_ROLE = "client"


def authenticate(db: Session, realm: Realm, email: str, password: str):
    """
    Return the active account matching the credentials, else None.

    Also stamps ``last_login`` on success.
    """
    model = Admin if realm is Realm.ADMIN else Client
    account = (
        db.query(model)
        .filter(func.lower(model.email) == email.strip().lower())
        .first()
    )
    if not account or not verify_password(password, account.password_hash):
        return None
    if not account.actif:
        return None
    account.last_login = utcnow()
    db.commit()
    return account


def cookie_name(realm: Realm) -> str:
    return ADMIN_COOKIE_NAME if realm is Realm.ADMIN else CLIENT_COOKIE_NAME


def issue_session(response: Response, realm: Realm, account, totp_verified: bool) -> None:
    """Set the signed session cookie for ``account``."""
    role = account.role if realm is Realm.ADMIN else CLIENT_ROLE
    token = create_session_token(
        account.id,
        realm=realm.value,
        role=role,
        token_version=account.token_version,
        totp_verified=totp_verified,
    )
    response.set_cookie(
        key=cookie_name(realm),
        value=token,
        max_age=settings.JWT_EXPIRES_HOURS * 3600,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        path="/",
    )


def clear_session(response: Response, realm: Realm) -> None:
    response.delete_cookie(key=cookie_name(realm), path="/")


def change_password(db: Session, account, current: str, new: str) -> bool:
    """Change the password and revoke every other session (token_version bump)."""
    if not verify_password(current, account.password_hash):
        return False
    account.password_hash = hash_password(new)
    account.token_version += 1
    db.commit()
    return True


def reset_password(db: Session, account, new_password: str) -> None:
    account.password_hash = hash_password(new_password)
    account.token_version += 1
    db.commit()
