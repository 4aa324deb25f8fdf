"""Activity logging service - dossier timeline feed."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import Request
from sqlalchemy.orm import Session

from portal.db.enums import ActorType
from portal.db.models import ActivityLog


def _client_ip(request: Request | None) -> str | None:
    if request is None or request.client is None:
        return None
    return request.client.host


def log_activity(
    db: Session,
    *,
    user_id: UUID | None,
    user_type: ActorType | str,
    action: str,
    resource_type: str,
    resource_id: UUID | None,
    dossier_id: UUID | None = None,
    details: dict[str, Any] | None = None,
    request: Request | None = None,
) -> ActivityLog:
    """
    Append an activity entry.

    Args:
        db: Database session
        user_id: Acting admin or client (None for system work)
        user_type: admin, client or system
        action: Dotted action name, e.g. ``dossier.created``
        resource_type: Kind of record the action touched
        resource_id: Id of that record
        dossier_id: Dossier the entry belongs to (timeline key)
        details: Action-specific payload
        request: Incoming request, for IP and user agent

    Returns:
        The created activity log entry
    """
    entry = ActivityLog(
        user_id=user_id,
        user_type=ActorType(user_type).value,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        dossier_id=dossier_id,
        details=details or {},
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent") if request is not None else None,
    )
    db.add(entry)
    db.flush()  # Don't commit - let caller control transaction
    return entry


def _actor_type(user_id: UUID | None) -> ActorType:
    return ActorType.ADMIN if user_id else ActorType.SYSTEM


# =============================================================================
# Dossiers
# =============================================================================


def log_dossier_created(db, dossier_id, admin_id, details, request=None):
    return log_activity(
        db, user_id=admin_id, user_type=ActorType.ADMIN, action="dossier.created",
        resource_type="dossier", resource_id=dossier_id, dossier_id=dossier_id,
        details=details, request=request,
    )


def log_dossier_updated(db, dossier_id, admin_id, changes: list[str], request=None):
    return log_activity(
        db, user_id=admin_id, user_type=ActorType.ADMIN, action="dossier.updated",
        resource_type="dossier", resource_id=dossier_id, dossier_id=dossier_id,
        details={"changes": changes}, request=request,
    )


def log_dossier_statut_changed(db, dossier_id, admin_id, old_statut, new_statut, request=None):
    return log_activity(
        db, user_id=admin_id, user_type=ActorType.ADMIN, action="dossier.statut_changed",
        resource_type="dossier", resource_id=dossier_id, dossier_id=dossier_id,
        details={"old_statut": old_statut, "new_statut": new_statut}, request=request,
    )


def log_dossier_archived(db, dossier_id, admin_id, reference, intitule, request=None):
    return log_activity(
        db, user_id=admin_id, user_type=ActorType.ADMIN, action="dossier.archived",
        resource_type="dossier", resource_id=dossier_id, dossier_id=dossier_id,
        details={"reference": reference, "intitule": intitule}, request=request,
    )


def log_dossier_reopened(db, dossier_id, admin_id, reference, intitule, request=None):
    return log_activity(
        db, user_id=admin_id, user_type=ActorType.ADMIN, action="dossier.reopened",
        resource_type="dossier", resource_id=dossier_id, dossier_id=dossier_id,
        details={"reference": reference, "intitule": intitule}, request=request,
    )


def log_dossier_responsable_changed(db, dossier_id, admin_id, old, new, request=None):
    """``old`` / ``new`` are ``{"id", "nom"}`` dicts (``old`` may be None)."""
    return log_activity(
        db, user_id=admin_id, user_type=ActorType.ADMIN, action="dossier.responsable_changed",
        resource_type="dossier", resource_id=dossier_id, dossier_id=dossier_id,
        details={"old_responsable": old, "new_responsable": new}, request=request,
    )


def log_dossier_onedrive_linked(db, dossier_id, admin_id, folder_id, folder_path, request=None):
    return log_activity(
        db, user_id=admin_id, user_type=_actor_type(admin_id),
        action="dossier.onedrive_linked", resource_type="dossier",
        resource_id=dossier_id, dossier_id=dossier_id,
        details={"onedrive_folder_id": folder_id, "onedrive_folder_path": folder_path},
        request=request,
    )


# =============================================================================
# Documents
# =============================================================================


def log_document_uploaded(
    db, document, user_id, user_type: ActorType | str, request=None
) -> ActivityLog:
    return log_activity(
        db, user_id=user_id, user_type=user_type, action="document.uploaded",
        resource_type="document", resource_id=document.id, dossier_id=document.dossier_id,
        details={
            "document_name": document.nom,
            "document_type": document.type_document,
            "mime_type": document.mime_type,
            "dossier_location": document.dossier_location,
        },
        request=request,
    )


def log_document_deleted(db, document, admin_id, request=None):
    return log_activity(
        db, user_id=admin_id, user_type=ActorType.ADMIN, action="document.deleted",
        resource_type="document", resource_id=document.id, dossier_id=document.dossier_id,
        details={"document_name": document.nom, "dossier_location": document.dossier_location},
        request=request,
    )


def log_document_visibility_changed(db, document, admin_id, old_visibility, request=None):
    return log_activity(
        db, user_id=admin_id, user_type=ActorType.ADMIN, action="document.visibility_changed",
        resource_type="document", resource_id=document.id, dossier_id=document.dossier_id,
        details={
            "document_name": document.nom,
            "old_visibility": old_visibility,
            "new_visibility": document.visible_client,
        },
        request=request,
    )


def log_document_moved(db, document, admin_id, old_location, request=None):
    return log_activity(
        db, user_id=admin_id, user_type=ActorType.ADMIN, action="document.moved",
        resource_type="document", resource_id=document.id, dossier_id=document.dossier_id,
        details={
            "document_name": document.nom,
            "old_location": old_location,
            "new_location": document.dossier_location,
        },
        request=request,
    )


def log_document_renamed(db, document, admin_id, old_name, request=None):
    return log_activity(
        db, user_id=admin_id, user_type=ActorType.ADMIN, action="document.renamed",
        resource_type="document", resource_id=document.id, dossier_id=document.dossier_id,
        details={"old_name": old_name, "new_name": document.nom},
        request=request,
    )


def log_document_downloaded(db, document, user_id, user_type, request=None):
    return log_activity(
        db, user_id=user_id, user_type=user_type, action="document.downloaded",
        resource_type="document", resource_id=document.id, dossier_id=document.dossier_id,
        details={"document_name": document.nom},
        request=request,
    )


def log_document_imported_onedrive(db, document, source: str = "sync"):
    return log_activity(
        db, user_id=None, user_type=ActorType.SYSTEM, action="document.imported_onedrive",
        resource_type="document", resource_id=document.id, dossier_id=document.dossier_id,
        details={
            "document_name": document.nom,
            "document_type": document.type_document,
            "mime_type": document.mime_type,
            "dossier_location": document.dossier_location,
            "onedrive_file_id": document.onedrive_file_id,
            "source": source,
        },
    )


def log_document_synced_onedrive(db, document, changes: list[str] | None = None):
    return log_activity(
        db, user_id=None, user_type=ActorType.SYSTEM, action="document.synced_onedrive",
        resource_type="document", resource_id=document.id, dossier_id=document.dossier_id,
        details={
            "document_name": document.nom,
            "onedrive_file_id": document.onedrive_file_id,
            "changes": changes or [],
        },
    )


def log_document_removed_onedrive(db, document, onedrive_file_id: str):
    return log_activity(
        db, user_id=None, user_type=ActorType.SYSTEM, action="document.removed_onedrive",
        resource_type="document", resource_id=document.id, dossier_id=document.dossier_id,
        details={"document_name": document.nom, "onedrive_file_id": onedrive_file_id},
    )


# =============================================================================
# Evenements
# =============================================================================


def _event_details(event) -> dict:
    return {
        "titre": event.titre,
        "type": event.type,
        "date_debut": event.date_debut.isoformat() if event.date_debut else None,
    }


def log_evenement_created(db, event, admin_id, request=None):
    return log_activity(
        db, user_id=admin_id, user_type=ActorType.ADMIN, action="evenement.created",
        resource_type="evenement", resource_id=event.id, dossier_id=event.dossier_id,
        details=_event_details(event), request=request,
    )


def log_evenement_updated(db, event, admin_id, request=None):
    return log_activity(
        db, user_id=admin_id, user_type=ActorType.ADMIN, action="evenement.updated",
        resource_type="evenement", resource_id=event.id, dossier_id=event.dossier_id,
        details=_event_details(event), request=request,
    )


def log_evenement_deleted(db, event, admin_id, request=None):
    return log_activity(
        db, user_id=admin_id, user_type=ActorType.ADMIN, action="evenement.deleted",
        resource_type="evenement", resource_id=event.id, dossier_id=event.dossier_id,
        details={"titre": event.titre}, request=request,
    )


def log_evenement_imported_google(db, event, calendar_id: str | None = None, source: str = "sync"):
    return log_activity(
        db, user_id=None, user_type=ActorType.SYSTEM, action="evenement.imported_google",
        resource_type="evenement", resource_id=event.id, dossier_id=event.dossier_id,
        details={
            "titre": event.titre,
            "google_event_id": event.google_event_id,
            "google_calendar_id": calendar_id,
            "source": source,
        },
    )


def log_evenement_synced_google(db, event, admin_id=None):
    return log_activity(
        db, user_id=admin_id, user_type=_actor_type(admin_id), action="evenement.synced_google",
        resource_type="evenement", resource_id=event.id, dossier_id=event.dossier_id,
        details={
            "titre": event.titre,
            "google_event_id": event.google_event_id,
            "google_calendar_id": event.google_calendar_id,
        },
    )


# =============================================================================
# Notes
# =============================================================================


def note_preview(contenu: str, length: int = 100) -> str:
    return contenu[:length] + ("..." if len(contenu) > length else "")


def log_note_created(db, note, admin_id, request=None):
    return log_activity(
        db, user_id=admin_id, user_type=ActorType.ADMIN, action="note.created",
        resource_type="note", resource_id=note.id, dossier_id=note.dossier_id,
        details={"preview": note_preview(note.contenu)}, request=request,
    )


def log_note_updated(db, note, admin_id, request=None):
    return log_activity(
        db, user_id=admin_id, user_type=ActorType.ADMIN, action="note.updated",
        resource_type="note", resource_id=note.id, dossier_id=note.dossier_id,
        request=request,
    )


def log_note_deleted(db, note, admin_id, request=None):
    return log_activity(
        db, user_id=admin_id, user_type=ActorType.ADMIN, action="note.deleted",
        resource_type="note", resource_id=note.id, dossier_id=note.dossier_id,
        details={"preview": note_preview(note.contenu, 50)}, request=request,
    )


def log_note_pin_toggled(db, note, admin_id, request=None):
    """Logs ``note.pinned`` or ``note.unpinned`` from the note's new state."""
    return log_activity(
        db, user_id=admin_id, user_type=ActorType.ADMIN,
        action="note.pinned" if note.is_pinned else "note.unpinned",
        resource_type="note", resource_id=note.id, dossier_id=note.dossier_id,
        request=request,
    )


# =============================================================================
# Tasks
# =============================================================================


def _log_task(db, action, task, admin_id, details=None, request=None):
    return log_activity(
        db, user_id=admin_id, user_type=ActorType.ADMIN, action=action,
        resource_type="task", resource_id=task.id, dossier_id=task.dossier_id,
        details={"titre": task.titre, **(details or {})}, request=request,
    )


def log_task_created(db, task, admin_id, request=None):
    details = {"priorite": task.priorite}
    if task.assigned_to_id:
        details["assigned_to"] = str(task.assigned_to_id)
    return _log_task(db, "task.created", task, admin_id, details, request)


def log_task_updated(db, task, admin_id, changes: list[str], request=None):
    return _log_task(db, "task.updated", task, admin_id, {"changes": changes}, request)


def log_task_completed(db, task, admin_id, request=None):
    return _log_task(db, "task.completed", task, admin_id, request=request)


def log_task_reopened(db, task, admin_id, request=None):
    return _log_task(db, "task.reopened", task, admin_id, request=request)


def log_task_deleted(db, task, admin_id, request=None):
    return _log_task(db, "task.deleted", task, admin_id, request=request)


# =============================================================================
# Integration runs
# =============================================================================


def log_onedrive_sync(db, dossier_id, admin_id, *, mode, imported, updated, deleted, errors):
    return log_activity(
        db, user_id=admin_id, user_type=_actor_type(admin_id), action="onedrive.sync",
        resource_type="dossier", resource_id=dossier_id, dossier_id=dossier_id,
        details={
            "mode": mode,
            "imported": imported,
            "updated": updated,
            "deleted": deleted,
            "errors": errors,
        },
    )


def log_google_calendar_sync(
    db, dossier_id, admin_id, *, mode, imported, updated, errors, calendar_name=None
):
    return log_activity(
        db, user_id=admin_id, user_type=_actor_type(admin_id), action="google_calendar.sync",
        resource_type="dossier", resource_id=dossier_id, dossier_id=dossier_id,
        details={
            "mode": mode,
            "imported": imported,
            "updated": updated,
            "errors": errors,
            "calendar_name": calendar_name,
        },
    )
