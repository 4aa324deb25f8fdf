"""Appointment requests router (admin side)."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from portal.core.deps import get_current_admin, get_db, require_csrf_header
from portal.db.enums import DemandeRdvStatut
from portal.db.models import Admin
from portal.schemas.common import Page, build_page
from portal.schemas.evenement import EvenementRead
from portal.schemas.portal import DemandeRdvAccept, DemandeRdvRead, DemandeRdvRefuse
from portal.services import demande_rdv_service

router = APIRouter()


def _get_or_404(db: Session, demande_id: UUID):
    demande = demande_rdv_service.get_demande(db, demande_id)
    if not demande:
        raise HTTPException(status_code=404, detail="Demande not found")
    return demande


@router.get("", response_model=Page)
def list_demandes(
    statut: DemandeRdvStatut | None = None,
    dossier_id: UUID | None = None,
    responsable_id: UUID | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    demandes, total = demande_rdv_service.list_demandes(
        db,
        page=page,
        per_page=limit,
        statut=statut,
        dossier_id=dossier_id,
        responsable_id=responsable_id,
    )
    items = [DemandeRdvRead.model_validate(d) for d in demandes]
    return build_page(items, total, page, limit)


@router.get("/{demande_id}", response_model=DemandeRdvRead)
def get_demande(
    demande_id: UUID,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return _get_or_404(db, demande_id)


@router.post("/{demande_id}/accepter", dependencies=[Depends(require_csrf_header)])
def accept_demande(
    demande_id: UUID,
    data: DemandeRdvAccept,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    demande = _get_or_404(db, demande_id)
    try:
        demande, event = demande_rdv_service.accept_demande(db, demande, data, admin.id)
    except demande_rdv_service.DemandeNotPendingError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {
        "demande": DemandeRdvRead.model_validate(demande),
        "evenement": EvenementRead.model_validate(event),
    }


@router.post("/{demande_id}/refuser", response_model=DemandeRdvRead, dependencies=[Depends(require_csrf_header)])
def refuse_demande(
    demande_id: UUID,
    data: DemandeRdvRefuse,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    demande = _get_or_404(db, demande_id)
    try:
        return demande_rdv_service.refuse_demande(db, demande, data, admin.id)
    except demande_rdv_service.DemandeNotPendingError as e:
        raise HTTPException(status_code=409, detail=str(e))
