"""Favorites router - the admin's pinned dossiers and clients."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from portal.core.deps import get_current_admin, get_db, require_csrf_header
from portal.db.enums import FavoriteType
from portal.db.models import Admin
from portal.schemas.common import MessageResponse
from portal.schemas.portal import FavoriteRead, FavoriteTarget
from portal.services import favorite_service

router = APIRouter()


@router.get("", response_model=list[FavoriteRead])
def list_favorites(admin: Admin = Depends(get_current_admin), db: Session = Depends(get_db)):
    return favorite_service.list_favorites(db, admin.id)


@router.post("", status_code=201, response_model=MessageResponse, dependencies=[Depends(require_csrf_header)])
def add_favorite(
    data: FavoriteTarget,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    try:
        favorite_service.add_favorite(db, admin.id, data.type, data.id)
    except favorite_service.FavoriteTargetNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except favorite_service.DuplicateFavoriteError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return MessageResponse(message="Added to favorites")


@router.delete("/{favori_type}/{favori_id}", response_model=MessageResponse, dependencies=[Depends(require_csrf_header)])
def remove_favorite(
    favori_type: FavoriteType,
    favori_id: UUID,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    if not favorite_service.remove_favorite(db, admin.id, favori_type, favori_id):
        raise HTTPException(status_code=404, detail="Favorite not found")
    return MessageResponse(message="Removed from favorites")


@router.post("/toggle", dependencies=[Depends(require_csrf_header)])
def toggle_favorite(
    data: FavoriteTarget,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    try:
        is_favorite = favorite_service.toggle_favorite(db, admin.id, data.type, data.id)
    except favorite_service.FavoriteTargetNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {
        "is_favorite": is_favorite,
        "message": "Added to favorites" if is_favorite else "Removed from favorites",
    }


@router.get("/check/{favori_type}/{favori_id}")
def check_favorite(
    favori_type: FavoriteType,
    favori_id: UUID,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return {"is_favorite": favorite_service.is_favorite(db, admin.id, favori_type, favori_id)}
