"""Admin authentication router - login, second factor, password and preferences."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.core.deps import get_current_admin, get_db, get_pending_admin, require_csrf_header
from portal.core.rate_limit import limiter
from portal.db.enums import Realm
from portal.db.models import Admin
from portal.schemas.auth import (
    AdminMe,
    LoginRequest,
    LoginResponse,
    NotificationPreferences,
    PasswordChange,
    TotpCode,
    TotpSetupResponse,
)
from portal.schemas.common import MessageResponse
from portal.services import auth_service, mfa_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=LoginResponse)
@limiter.limit(settings.RATE_LIMIT_LOGIN)
def login(
    request: Request,
    response: Response,
    data: LoginRequest,
    db: Session = Depends(get_db),
):
    """
    Check credentials and open a session.

    Admins with TOTP enabled get a session flagged unverified until
    ``/verify-totp`` succeeds.
    """
    admin = auth_service.authenticate(db, Realm.ADMIN, data.email, data.password)
    if not admin:
        logger.info("Failed admin login for %s", data.email)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    auth_service.issue_session(response, Realm.ADMIN, admin, totp_verified=not admin.totp_enabled)
    if admin.totp_enabled:
        return LoginResponse(message="Two-factor code required", require_totp=True)
    return LoginResponse(
        message="Login successful",
        user=AdminMe.model_validate(admin).model_dump(mode="json"),
    )


@router.post("/verify-totp", response_model=LoginResponse, dependencies=[Depends(require_csrf_header)])
@limiter.limit(settings.RATE_LIMIT_LOGIN)
def verify_totp(
    request: Request,
    response: Response,
    data: TotpCode,
    admin: Admin = Depends(get_pending_admin),
):
    if not admin.totp_enabled:
        raise HTTPException(status_code=400, detail="Two-factor authentication is not enabled")
    if not mfa_service.verify_account_code(admin, data.code):
        raise HTTPException(status_code=401, detail="Invalid code")
    auth_service.issue_session(response, Realm.ADMIN, admin, totp_verified=True)
    return LoginResponse(
        message="Login successful",
        user=AdminMe.model_validate(admin).model_dump(mode="json"),
    )


@router.post("/logout", response_model=MessageResponse, dependencies=[Depends(require_csrf_header)])
def logout(response: Response):
    auth_service.clear_session(response, Realm.ADMIN)
    return MessageResponse(message="Logged out")


@router.get("/me", response_model=AdminMe)
def me(admin: Admin = Depends(get_current_admin)):
    return admin


@router.put("/password", response_model=MessageResponse, dependencies=[Depends(require_csrf_header)])
def change_password(
    data: PasswordChange,
    response: Response,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """Other sessions are revoked; this one gets a fresh cookie."""
    if data.new_password != data.confirm_password:
        raise HTTPException(status_code=400, detail="Passwords do not match")
    if not auth_service.change_password(db, admin, data.current_password, data.new_password):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    auth_service.issue_session(response, Realm.ADMIN, admin, totp_verified=True)
    return MessageResponse(message="Password updated")


@router.post("/setup-totp", response_model=TotpSetupResponse, dependencies=[Depends(require_csrf_header)])
def setup_totp(admin: Admin = Depends(get_current_admin), db: Session = Depends(get_db)):
    secret, uri = mfa_service.setup_totp(db, admin)
    return TotpSetupResponse(secret=secret, provisioning_uri=uri)


@router.post("/confirm-totp", response_model=MessageResponse, dependencies=[Depends(require_csrf_header)])
def confirm_totp(
    data: TotpCode,
    response: Response,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    if not mfa_service.confirm_totp(db, admin, data.code):
        raise HTTPException(status_code=400, detail="Invalid code")
    auth_service.issue_session(response, Realm.ADMIN, admin, totp_verified=True)
    return MessageResponse(message="Two-factor authentication enabled")


@router.put("/notifications", response_model=AdminMe, dependencies=[Depends(require_csrf_header)])
def update_notification_preferences(
    data: NotificationPreferences,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is None and field != "email_notification":
            continue
        setattr(admin, field, value)
    db.commit()
    db.refresh(admin)
    return admin
