"""Client service - client accounts and their dossiers."""

from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from portal.core.security import generate_password, hash_password
from portal.db.enums import JobType
from portal.db.models import Client, Dossier
from portal.schemas.client import ClientCreate, ClientUpdate, NotificationPreferences
from portal.services import job_service


class DuplicateEmailError(Exception):
    pass


def get_client(db: Session, client_id: UUID) -> Client | None:
    return db.query(Client).filter(Client.id == client_id).first()


def list_clients(
    db: Session,
    page: int = 1,
    per_page: int = 20,
    search: str | None = None,
    client_type: str | None = None,
    responsable_id: UUID | None = None,
) -> tuple[list[Client], int]:
    query = db.query(Client)
    if search:
        pattern = f"%{search}%"
        query = query.filter(
            or_(
                Client.nom.ilike(pattern),
                Client.prenom.ilike(pattern),
                Client.email.ilike(pattern),
            )
        )
    if client_type:
        query = query.filter(Client.type == client_type)
    if responsable_id:
        query = query.filter(Client.responsable_id == responsable_id)

    total = query.count()
    clients = (
        query.order_by(Client.created_at.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return clients, total


def _email_taken(db: Session, email: str, exclude_id: UUID | None = None) -> bool:
    query = db.query(Client).filter(Client.email == email)
    if exclude_id:
        query = query.filter(Client.id != exclude_id)
    return db.query(query.exists()).scalar()


def create_client(db: Session, data: ClientCreate, created_by_id: UUID) -> tuple[Client, str | None]:
    """
    Create a client account.

    Returns (client, generated_password); the password is None when the
    caller supplied one.
    """
    email = data.email.lower()
    if _email_taken(db, email):
        raise DuplicateEmailError(email)

    generated = None if data.password else generate_password()
    values = data.model_dump(exclude={"password", "email"}, exclude_none=True)
    values["type"] = data.type.value
    client = Client(
        **values,
        email=email,
        password_hash=hash_password(data.password or generated),
        created_by_id=created_by_id,
    )
    db.add(client)
    db.commit()
    db.refresh(client)

    job_service.enqueue_job(
        db,
        JobType.ONEDRIVE_CLIENT_FOLDER_CREATE,
        {"client_id": str(client.id)},
        idempotency_key=f"onedrive_client_folder_create:{client.id}",
    )
    return client, generated


def update_client(db: Session, client: Client, data: ClientUpdate) -> Client:
    """
    Partial update (exclude_unset). Optional contact fields may be cleared
    with null; required identity fields ignore null.
    """
    update_data = data.model_dump(exclude_unset=True)
    required = {"email", "nom", "prenom", "type", "actif"}

    if update_data.get("email"):
        update_data["email"] = update_data["email"].lower()
        if _email_taken(db, update_data["email"], exclude_id=client.id):
            raise DuplicateEmailError(update_data["email"])

    for field, value in update_data.items():
        if value is None and field in required:
            continue
        if field == "type" and value is not None:
            value = value.value
        setattr(client, field, value)

    if update_data.get("actif") is False:
        client.token_version += 1
    db.commit()
    db.refresh(client)
    return client


def delete_client(db: Session, client: Client) -> None:
    db.delete(client)
    db.commit()


def reset_password(db: Session, client: Client) -> str:
    password = generate_password()
    client.password_hash = hash_password(password)
    client.token_version += 1
    db.commit()
    return password


def list_client_dossiers(db: Session, client_id: UUID) -> list[Dossier]:
    return (
        db.query(Dossier)
        .options(joinedload(Dossier.assigned_admin))
        .filter(Dossier.client_id == client_id)
        .order_by(Dossier.created_at.desc())
        .all()
    )


def update_notification_preferences(db: Session, client: Client, data: NotificationPreferences) -> Client:
    for field, value in data.model_dump(exclude_none=True).items():
        setattr(client, field, value)
    db.commit()
    db.refresh(client)
    return client
