"""Favorite service - dossiers and clients pinned by an admin."""

from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from portal.db.enums import FavoriteType
from portal.db.models import AdminFavorite, Client, Dossier
from portal.schemas.portal import FavoriteRead


class FavoriteTargetNotFound(Exception):
    pass


class DuplicateFavoriteError(Exception):
    pass


def _target_exists(db: Session, favori_type: FavoriteType, favori_id: UUID) -> bool:
    model = Dossier if favori_type is FavoriteType.DOSSIER else Client
    return db.get(model, favori_id) is not None


def _find(db: Session, admin_id: UUID, favori_type: FavoriteType, favori_id: UUID) -> AdminFavorite | None:
    return (
        db.query(AdminFavorite)
        .filter(
            AdminFavorite.admin_id == admin_id,
            AdminFavorite.favori_type == favori_type.value,
            AdminFavorite.favori_id == favori_id,
        )
        .first()
    )


def is_favorite(db: Session, admin_id: UUID, favori_type: FavoriteType, favori_id: UUID) -> bool:
    return _find(db, admin_id, favori_type, favori_id) is not None


def add_favorite(db: Session, admin_id: UUID, favori_type: FavoriteType, favori_id: UUID) -> AdminFavorite:
    """Append a favorite at the end of the admin's list."""
    if not _target_exists(db, favori_type, favori_id):
        raise FavoriteTargetNotFound(f"{favori_type.value} not found")
    if _find(db, admin_id, favori_type, favori_id):
        raise DuplicateFavoriteError("Already in favorites")

    last = (
        db.query(func.max(AdminFavorite.ordre)).filter(AdminFavorite.admin_id == admin_id).scalar()
    )
    favorite = AdminFavorite(
        admin_id=admin_id,
        favori_type=favori_type.value,
        favori_id=favori_id,
        ordre=(last or 0) + 1,
    )
    db.add(favorite)
    db.commit()
    db.refresh(favorite)
    return favorite


def remove_favorite(db: Session, admin_id: UUID, favori_type: FavoriteType, favori_id: UUID) -> bool:
    favorite = _find(db, admin_id, favori_type, favori_id)
    if not favorite:
        return False
    db.delete(favorite)
    db.commit()
    return True


def toggle_favorite(db: Session, admin_id: UUID, favori_type: FavoriteType, favori_id: UUID) -> bool:
    """Returns the new state."""
    if remove_favorite(db, admin_id, favori_type, favori_id):
        return False
    add_favorite(db, admin_id, favori_type, favori_id)
    return True


def list_favorites(db: Session, admin_id: UUID) -> list[FavoriteRead]:
    """
    Resolve favorites to display labels. Favorites whose target was deleted
    are skipped.
    """
    favorites = (
        db.query(AdminFavorite)
        .filter(AdminFavorite.admin_id == admin_id)
        .order_by(AdminFavorite.ordre.asc())
        .all()
    )
    dossier_ids = [f.favori_id for f in favorites if f.favori_type == FavoriteType.DOSSIER.value]
    client_ids = [f.favori_id for f in favorites if f.favori_type == FavoriteType.CLIENT.value]

    dossiers = {
        d.id: d
        for d in db.query(Dossier).options(joinedload(Dossier.client)).filter(Dossier.id.in_(dossier_ids))
    } if dossier_ids else {}
    clients = {
        c.id: c for c in db.query(Client).filter(Client.id.in_(client_ids))
    } if client_ids else {}

    items: list[FavoriteRead] = []
    for favorite in favorites:
        if favorite.favori_type == FavoriteType.DOSSIER.value:
            dossier = dossiers.get(favorite.favori_id)
            if not dossier:
                continue
            items.append(FavoriteRead(
                id=favorite.id,
                type=favorite.favori_type,
                favori_id=favorite.favori_id,
                ordre=favorite.ordre,
                label=dossier.reference,
                sublabel=dossier.intitule,
                client_name=dossier.client.full_name if dossier.client else None,
            ))
        else:
            client = clients.get(favorite.favori_id)
            if not client:
                continue
            items.append(FavoriteRead(
                id=favorite.id,
                type=favorite.favori_type,
                favori_id=favorite.favori_id,
                ordre=favorite.ordre,
                label=client.full_name,
                sublabel=client.email,
            ))
    return items
