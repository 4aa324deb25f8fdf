"""Authentication-related Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class TotpCode(BaseModel):
    code: str = Field(..., min_length=6, max_length=10)


class TotpDisable(BaseModel):
    """Turning the second factor off takes both the password and a current code."""
    password: str
    code: str = Field(..., min_length=6, max_length=10)


class TotpSetupResponse(BaseModel):
    """Secret plus the otpauth:// URI the front-end renders as a QR code."""
    secret: str
    provisioning_uri: str


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8)
    confirm_password: str


class NotificationPreferences(BaseModel):
    notif_email_document: bool | None = None
    email_notification: EmailStr | None = None
    filter_by_responsable: bool | None = None


class AdminMe(BaseModel):
    id: UUID
    email: str
    nom: str
    prenom: str
    username: str | None
    role: str
    totp_enabled: bool
    notif_email_document: bool
    email_notification: str | None
    filter_by_responsable: bool

    model_config = {"from_attributes": True}


class ClientMe(BaseModel):
    id: UUID
    email: str
    civilite: str | None
    nom: str
    prenom: str
    type: str
    totp_enabled: bool
    peut_uploader: bool
    peut_demander_rdv: bool

    model_config = {"from_attributes": True}


class LoginResponse(BaseModel):
    """``require_totp`` tells the front-end to ask for the second factor."""
    message: str
    require_totp: bool = False
    require_totp_setup: bool = False
    user: dict | None = None
