"""Dossier timeline - activity entries rendered for display."""

from __future__ import annotations

from typing import Any, Callable, NamedTuple
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from portal.db.enums import ActorType
from portal.db.models import ActivityLog, Admin, Client
from portal.services.search_service import escape_like


class RenderedActivity(NamedTuple):
    icon: str
    color: str
    title: str
    description: str


def _location_label(details: dict) -> str:
    return "CLIENT" if details.get("dossier_location") == "client" else "CABINET"


def _dossier_updated(details: dict) -> RenderedActivity:
    changes = details.get("changes") or []
    description = (
        f"Champs modifies: {', '.join(changes)}" if changes else "Informations mises a jour"
    )
    return RenderedActivity("edit", "blue", "Dossier modifie", description)


def _document_uploaded(details: dict) -> RenderedActivity:
    return RenderedActivity(
        "upload",
        "green" if details.get("dossier_location") == "client" else "blue",
        f"Document ajoute ({_location_label(details)})",
        details.get("document_name") or "Nouveau document",
    )


def _task_updated(details: dict) -> RenderedActivity:
    titre = details.get("titre")
    if titre:
        changes = details.get("changes") or []
        description = f'"{titre}" - {", ".join(changes) or "mise a jour"}'
    else:
        description = "Tache mise a jour"
    return RenderedActivity("check-square", "blue", "Tache modifiee", description)


_RENDERERS: dict[str, Callable[[dict], RenderedActivity]] = {
    "dossier.created": lambda d: RenderedActivity(
        "folder-plus", "green", "Dossier cree", f'Dossier "{d.get("reference")}" ouvert'
    ),
    "dossier.statut_changed": lambda d: RenderedActivity(
        "refresh-cw",
        "blue",
        "Statut modifie",
        f"{d.get('old_statut') or '?'} → {d.get('new_statut') or '?'}",
    ),
    "dossier.updated": _dossier_updated,
    "document.uploaded": _document_uploaded,
    "document.deleted": lambda d: RenderedActivity(
        "trash-2", "red", f"Document supprime ({_location_label(d)})",
        d.get("document_name") or "Document",
    ),
    "evenement.created": lambda d: RenderedActivity(
        "calendar-plus", "purple", "Evenement cree", d.get("titre") or "Nouvel evenement"
    ),
    "evenement.updated": lambda d: RenderedActivity(
        "calendar", "blue", "Evenement modifie", d.get("titre") or "Evenement"
    ),
    "evenement.deleted": lambda d: RenderedActivity(
        "calendar-x", "red", "Evenement supprime", d.get("titre") or "Evenement"
    ),
    "note.created": lambda d: RenderedActivity(
        "sticky-note", "yellow", "Note ajoutee", d.get("preview") or "Nouvelle note"
    ),
    "note.updated": lambda d: RenderedActivity(
        "edit-3", "yellow", "Note modifiee", "Note mise a jour"
    ),
    "task.created": lambda d: RenderedActivity(
        "check-square", "green", "Tache creee", d.get("titre") or "Nouvelle tache"
    ),
    "task.updated": _task_updated,
    "task.completed": lambda d: RenderedActivity(
        "check-circle", "green", "Tache terminee", d.get("titre") or "Tache"
    ),
    "task.reopened": lambda d: RenderedActivity(
        "rotate-ccw", "blue", "Tache rouverte", d.get("titre") or "Tache"
    ),
    "task.deleted": lambda d: RenderedActivity(
        "trash-2", "red", "Tache supprimee", d.get("titre") or "Tache"
    ),
}


def render_activity(action: str, details: dict | None) -> RenderedActivity:
    """Icon, color, title and description for one entry; generic fallback for unknown actions."""
    renderer = _RENDERERS.get(action)
    if renderer is None:
        title = action.replace(".", " ", 1).replace("_", " ", 1)
        return RenderedActivity("activity", "gray", title, "")
    return renderer(details if isinstance(details, dict) else {})


def _action_filter(action: str):
    if action == "onedrive":
        return or_(
            ActivityLog.action.like("onedrive%"),
            ActivityLog.action.like(r"%\_onedrive", escape="\\"),
            ActivityLog.action.like("dossier.onedrive%"),
        )
    if action == "google":
        return or_(
            ActivityLog.action.like(r"google\_calendar%", escape="\\"),
            ActivityLog.action.like(r"%\_google", escape="\\"),
        )
    return ActivityLog.action.like(f"{escape_like(action)}%", escape="\\")


def _load_actors(db: Session, entries: list[ActivityLog]) -> dict[tuple[str, UUID], dict]:
    admin_ids = {e.user_id for e in entries if e.user_id and e.user_type == ActorType.ADMIN.value}
    client_ids = {e.user_id for e in entries if e.user_id and e.user_type == ActorType.CLIENT.value}
    actors: dict[tuple[str, UUID], dict] = {}
    if admin_ids:
        for admin in db.query(Admin).filter(Admin.id.in_(admin_ids)).all():
            actors[("admin", admin.id)] = {
                "id": str(admin.id), "type": "admin", "nom": admin.nom, "prenom": admin.prenom,
            }
    if client_ids:
        for client in db.query(Client).filter(Client.id.in_(client_ids)).all():
            actors[("client", client.id)] = {
                "id": str(client.id), "type": "client", "nom": client.nom, "prenom": client.prenom,
            }
    return actors


def get_timeline(
    db: Session,
    dossier_id: UUID,
    limit: int = 50,
    offset: int = 0,
    action: str = "",
) -> dict[str, Any]:
    """
    Activity feed of one dossier, newest first.

    ``action`` is a prefix filter, except for the ``onedrive`` and ``google``
    groups which gather the integration actions.
    """
    query = db.query(ActivityLog).filter(ActivityLog.dossier_id == dossier_id)
    if action:
        query = query.filter(_action_filter(action))
    entries = (
        query.order_by(ActivityLog.created_at.desc(), ActivityLog.id)
        .offset(offset)
        .limit(limit)
        .all()
    )

    actors = _load_actors(db, entries)
    data = []
    for entry in entries:
        rendered = render_activity(entry.action, entry.details)
        user = actors.get((entry.user_type, entry.user_id)) if entry.user_id else None
        data.append(
            {
                "id": str(entry.id),
                "action": entry.action,
                "created_at": entry.created_at.isoformat(),
                "user": user,
                "metadata": entry.details or {},
                **rendered._asdict(),
            }
        )

    return {
        "data": data,
        "meta": {"limit": limit, "offset": offset, "has_more": len(entries) == limit},
    }
