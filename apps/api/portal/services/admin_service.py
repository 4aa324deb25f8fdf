"""Admin service - staff accounts managed by the super admin.

The super_admin role is created from the CLI only. Every mutation here
refuses a super_admin target with ``ProtectedAccountError``.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from portal.core.security import generate_password, hash_password
from portal.db.enums import AdminRole
from portal.db.models import Admin
from portal.schemas.admin import AdminCreate, AdminUpdate
from portal.services.client_service import DuplicateEmailError


class ProtectedAccountError(Exception):
    """Raised when an API mutation targets a super admin."""


def _guard(admin: Admin, action: str) -> None:
    if admin.is_super_admin:
        raise ProtectedAccountError(f"Cannot {action} a super admin")


def get_admin(db: Session, admin_id: UUID) -> Admin | None:
    return db.query(Admin).filter(Admin.id == admin_id).first()


def get_admin_by_email(db: Session, email: str) -> Admin | None:
    return db.query(Admin).filter(Admin.email == email.lower()).first()


def list_admins(db: Session) -> list[Admin]:
    """Plain admins only; super admins are not listed."""
    return (
        db.query(Admin)
        .filter(Admin.role == AdminRole.ADMIN.value)
        .order_by(Admin.created_at.desc())
        .all()
    )


def list_responsables(db: Session) -> list[Admin]:
    """Active staff that can be made responsible for a client."""
    return db.query(Admin).filter(Admin.actif.is_(True)).order_by(Admin.prenom, Admin.nom).all()


def create_admin(db: Session, data: AdminCreate, created_by_id: UUID) -> tuple[Admin, str]:
    """Create an admin with a generated password. Returns (admin, password)."""
    if get_admin_by_email(db, data.email):
        raise DuplicateEmailError(data.email)
    password = generate_password()
    admin = Admin(
        email=data.email.lower(),
        nom=data.nom,
        prenom=data.prenom,
        username=data.username,
        role=AdminRole.ADMIN.value,
        password_hash=hash_password(password),
        created_by_id=created_by_id,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    return admin, password


def create_super_admin(db: Session, email: str, nom: str, prenom: str, password: str) -> Admin:
    """Seed path for the protected role (CLI only)."""
    admin = Admin(
        email=email.lower(),
        nom=nom,
        prenom=prenom,
        role=AdminRole.SUPER_ADMIN.value,
        password_hash=hash_password(password),
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    return admin


def update_admin(db: Session, admin: Admin, data: AdminUpdate) -> Admin:
    _guard(admin, "modify")
    update_data = data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        if value is None:
            continue
        if field == "email":
            value = value.lower()
        setattr(admin, field, value)
    if update_data.get("actif") is False:
        admin.token_version += 1
    db.commit()
    db.refresh(admin)
    return admin


def delete_admin(db: Session, admin: Admin) -> None:
    _guard(admin, "delete")
    db.delete(admin)
    db.commit()


def toggle_status(db: Session, admin: Admin) -> Admin:
    _guard(admin, "deactivate")
    admin.actif = not admin.actif
    if not admin.actif:
        # Deactivation ends open sessions
        admin.token_version += 1
    db.commit()
    db.refresh(admin)
    return admin


def reset_password(db: Session, admin: Admin) -> str:
    _guard(admin, "reset the password of")
    password = generate_password()
    admin.password_hash = hash_password(password)
    admin.token_version += 1
    db.commit()
    return password
