"""Client settings router - profile summary, email preferences and second factor."""

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from portal.core.deps import get_current_client, get_db, require_csrf_header
from portal.core.security import verify_password
from portal.db.enums import Realm
from portal.db.models import Client
from portal.schemas.auth import TotpDisable
from portal.schemas.client import ClientSettingsRead, NotificationPreferences
from portal.schemas.common import MessageResponse
from portal.services import auth_service, client_service, mfa_service

router = APIRouter()


@router.get("", response_model=ClientSettingsRead)
def get_settings(client: Client = Depends(get_current_client)):
    return client


@router.put("/notifications", response_model=ClientSettingsRead, dependencies=[Depends(require_csrf_header)])
def update_notifications(
    data: NotificationPreferences,
    client: Client = Depends(get_current_client),
    db: Session = Depends(get_db),
):
    return client_service.update_notification_preferences(db, client, data)


@router.post("/disable-totp", response_model=MessageResponse, dependencies=[Depends(require_csrf_header)])
def disable_totp(
    data: TotpDisable,
    response: Response,
    client: Client = Depends(get_current_client),
    db: Session = Depends(get_db),
):
    """
    Reset the second factor, e.g. before moving to a new phone.

    Two-factor stays mandatory: the new session is unverified and only
    reaches the setup endpoints until a new authenticator is confirmed.
    """
    if not verify_password(data.password, client.password_hash):
        raise HTTPException(status_code=400, detail="Incorrect password")
    if not mfa_service.verify_account_code(client, data.code):
        raise HTTPException(status_code=400, detail="Invalid code")
    mfa_service.disable_totp(db, client)
    auth_service.issue_session(response, Realm.CLIENT, client, totp_verified=False)
    return MessageResponse(message="Two-factor authentication disabled, set it up again to continue")
