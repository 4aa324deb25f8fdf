"""Client authentication router. Two-factor is mandatory in this realm."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.core.deps import get_current_client, get_db, get_pending_client, require_csrf_header
from portal.core.rate_limit import limiter
from portal.db.enums import Realm
from portal.db.models import Client
from portal.schemas.auth import (
    ClientMe,
    LoginRequest,
    LoginResponse,
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
    """The session stays unverified until TOTP setup or verification completes."""
    client = auth_service.authenticate(db, Realm.CLIENT, data.email, data.password)
    if not client:
        logger.info("Failed client login for %s", data.email)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    auth_service.issue_session(response, Realm.CLIENT, client, totp_verified=False)
    if not client.totp_enabled:
        return LoginResponse(message="Two-factor setup required", require_totp_setup=True)
    return LoginResponse(message="Two-factor code required", require_totp=True)


@router.get("/totp-status")
def totp_status(client: Client = Depends(get_pending_client)):
    return {"totp_enabled": client.totp_enabled}


@router.post("/setup-totp", response_model=TotpSetupResponse, dependencies=[Depends(require_csrf_header)])
def setup_totp(client: Client = Depends(get_pending_client), db: Session = Depends(get_db)):
    if client.totp_enabled:
        raise HTTPException(status_code=400, detail="Two-factor authentication already enabled")
    secret, uri = mfa_service.setup_totp(db, client)
    return TotpSetupResponse(secret=secret, provisioning_uri=uri)


@router.post("/confirm-totp", response_model=LoginResponse, dependencies=[Depends(require_csrf_header)])
def confirm_totp(
    data: TotpCode,
    response: Response,
    client: Client = Depends(get_pending_client),
    db: Session = Depends(get_db),
):
    if not mfa_service.confirm_totp(db, client, data.code):
        raise HTTPException(status_code=400, detail="Invalid code")
    auth_service.issue_session(response, Realm.CLIENT, client, totp_verified=True)
    return LoginResponse(
        message="Two-factor authentication enabled",
        user=ClientMe.model_validate(client).model_dump(mode="json"),
    )


@router.post("/verify-totp", response_model=LoginResponse, dependencies=[Depends(require_csrf_header)])
@limiter.limit(settings.RATE_LIMIT_LOGIN)
def verify_totp(
    request: Request,
    response: Response,
    data: TotpCode,
    client: Client = Depends(get_pending_client),
):
    if not client.totp_enabled:
        raise HTTPException(
            status_code=428,
            detail={"message": "Two-factor setup required", "code": "TOTP_SETUP_REQUIRED"},
        )
    if not mfa_service.verify_account_code(client, data.code):
        raise HTTPException(status_code=401, detail="Invalid code")
    auth_service.issue_session(response, Realm.CLIENT, client, totp_verified=True)
    return LoginResponse(
        message="Login successful",
        user=ClientMe.model_validate(client).model_dump(mode="json"),
    )


@router.post("/logout", response_model=MessageResponse, dependencies=[Depends(require_csrf_header)])
def logout(response: Response):
    auth_service.clear_session(response, Realm.CLIENT)
    return MessageResponse(message="Logged out")


@router.get("/me", response_model=ClientMe)
def me(client: Client = Depends(get_current_client)):
    return client


@router.put("/password", response_model=MessageResponse, dependencies=[Depends(require_csrf_header)])
def change_password(
    data: PasswordChange,
    response: Response,
    client: Client = Depends(get_current_client),
    db: Session = Depends(get_db),
):
    if data.new_password != data.confirm_password:
        raise HTTPException(status_code=400, detail="Passwords do not match")
    if not auth_service.change_password(db, client, data.current_password, data.new_password):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    auth_service.issue_session(response, Realm.CLIENT, client, totp_verified=True)
    return MessageResponse(message="Password updated")
