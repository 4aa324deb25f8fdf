"""FastAPI dependencies for authentication, authorization, and database access."""

from typing import Generator

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from portal.core.providers import Integrations
from portal.core.security import decode_session_token
from portal.db.enums import Realm
from portal.db.models import Admin, Client
from portal.db.session import SessionLocal


# Cookie and header names
ADMIN_COOKIE_NAME = "portal_admin_session"
CLIENT_COOKIE_NAME = "portal_client_session"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _load_account(request: Request, db: Session, realm: Realm):
    """
    Resolve the account behind the realm's session cookie.

    Returns (account, payload). Validates cookie, signature, realm,
    account state and token version.
    """
    cookie_name = ADMIN_COOKIE_NAME if realm is Realm.ADMIN else CLIENT_COOKIE_NAME
    model = Admin if realm is Realm.ADMIN else Client

    token = request.cookies.get(cookie_name)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        payload = decode_session_token(token)
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid session")

    if payload.get("realm") != realm.value:
        raise HTTPException(status_code=401, detail="Invalid session")

    account = db.query(model).filter(model.id == payload["sub"]).first()
    if not account:
        raise HTTPException(status_code=401, detail="Account not found")

    if not account.actif:
        raise HTTPException(status_code=401, detail="Account disabled")

    # Token version check (revocation support)
    if account.token_version != payload.get("token_version"):
        raise HTTPException(status_code=401, detail="Session revoked")

    return account, payload


def get_pending_admin(request: Request, db: Session = Depends(get_db)) -> Admin:
    """Logged-in admin whose second factor may still be unverified (verify-totp, logout)."""
    admin, _ = _load_account(request, db, Realm.ADMIN)
    return admin


def get_current_admin(request: Request, db: Session = Depends(get_db)) -> Admin:
    """
    Get authenticated admin from session cookie.

    Admins who enabled TOTP must have verified it for this session.

    Raises:
        HTTPException 401: Authentication failed
    """
    admin, payload = _load_account(request, db, Realm.ADMIN)
    if admin.totp_enabled and not payload.get("totp_verified"):
        raise HTTPException(status_code=401, detail="Two-factor verification required")
    return admin


def require_super_admin(admin: Admin = Depends(get_current_admin)) -> Admin:
    if not admin.is_super_admin:
        raise HTTPException(status_code=403, detail="Super admin access required")
    return admin


def get_pending_client(request: Request, db: Session = Depends(get_db)) -> Client:
    """Logged-in client before the mandatory second factor (setup/verify TOTP)."""
    client, _ = _load_account(request, db, Realm.CLIENT)
    return client


def get_current_client(request: Request, db: Session = Depends(get_db)) -> Client:
    """
    Get authenticated client from session cookie.

    Two-factor is mandatory for clients: without it the portal answers 428
    with a code telling the front-end which step is missing.
    """
    client, payload = _load_account(request, db, Realm.CLIENT)
    if not client.totp_enabled:
        raise HTTPException(
            status_code=428,
            detail={"message": "Two-factor setup required", "code": "TOTP_SETUP_REQUIRED"},
        )
    if not payload.get("totp_verified"):
        raise HTTPException(
            status_code=428,
            detail={"message": "Two-factor verification required", "code": "TOTP_VERIFICATION_REQUIRED"},
        )
    return client


def require_csrf_header(request: Request) -> None:
    """
    Verify CSRF header on mutations.

    Apply to state-changing endpoints (POST, PUT, PATCH, DELETE).

    Raises:
        HTTPException 403: Missing or invalid CSRF header
    """
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(
            status_code=403,
            detail=f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'",
        )


def get_integrations(request: Request) -> Integrations:
    """Provider container built in the app lifespan."""
    integrations = getattr(request.app.state, "integrations", None)
    if integrations is None:
        raise HTTPException(status_code=503, detail="Integrations not initialised")
    return integrations
