"""Parametres router - firm settings grouped by category."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from portal.core.deps import get_current_admin, get_db, require_csrf_header
from portal.db.models import Admin
from portal.schemas.parametre import ParametresUpdate, ParametresUpdated
from portal.services import parametre_service

router = APIRouter()


@router.get("")
def list_parametres(admin: Admin = Depends(get_current_admin), db: Session = Depends(get_db)):
    return parametre_service.list_grouped(db)


@router.put("", response_model=ParametresUpdated, dependencies=[Depends(require_csrf_header)])
def update_parametres(
    data: ParametresUpdate,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """Unknown keys are ignored; a value of the wrong type rejects the whole update."""
    try:
        updated = parametre_service.update_parametres(
            db, [(item.cle, item.valeur) for item in data.parametres], admin.id
        )
    except parametre_service.InvalidParametreValue as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return ParametresUpdated(message="Parametres updated", updated=updated)


@router.get("/value/{cle}")
def get_value(cle: str, admin: Admin = Depends(get_current_admin), db: Session = Depends(get_db)):
    parametre = parametre_service.get_parametre(db, cle)
    if not parametre:
        raise HTTPException(status_code=404, detail="Parametre not found")
    return {"value": parametre_service.typed_value(parametre)}


@router.get("/{categorie}")
def list_categorie(categorie: str, admin: Admin = Depends(get_current_admin), db: Session = Depends(get_db)):
    return [parametre_service.to_dict(p) for p in parametre_service.list_by_categorie(db, categorie)]
