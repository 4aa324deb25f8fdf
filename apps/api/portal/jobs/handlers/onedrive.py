"""OneDrive job handlers."""

from __future__ import annotations

import logging
from uuid import UUID

from portal.core.structured_logging import build_log_context

logger = logging.getLogger(__name__)


def _dossier_id(job) -> UUID:
    payload = job.payload or {}
    raw = payload.get("dossier_id")
    if not raw:
        raise ValueError(f"Missing dossier_id in {job.job_type} payload")
    try:
        return UUID(str(raw))
    except ValueError as exc:
        raise ValueError(f"Invalid dossier_id in {job.job_type} payload") from exc


async def process_folder_create(db, job, integrations) -> None:
    """
    Create the OneDrive folder of a newly created dossier.

    Payload:
      - dossier_id (required): dossier UUID
    """
    from portal.services import folder_service

    dossier_id = _dossier_id(job)
    result = await folder_service.create_dossier_folder(db, integrations.drive(db), dossier_id)
    if not result.success:
        raise RuntimeError(f"OneDrive folder creation failed: {result.error}")
    logger.info(
        "OneDrive folder ready at %s",
        result.folder_path,
        extra=build_log_context(job_id=str(job.id), service="onedrive", dossier_id=str(dossier_id)),
    )


async def process_client_folder_create(db, job, integrations) -> None:
    """
    Create the OneDrive folder of a new client under the clients root.

    Payload:
      - client_id (required): client UUID
    """
    from portal.services import folder_service

    raw = (job.payload or {}).get("client_id")
    if not raw:
        raise ValueError("Missing client_id in onedrive_client_folder_create payload")
    client_id = UUID(str(raw))
    result = await folder_service.create_client_folder(db, integrations.drive(db), client_id)
    if not result.success:
        raise RuntimeError(f"OneDrive client folder creation failed: {result.error}")
    logger.info(
        "OneDrive client folder ready at %s",
        result.folder_path,
        extra=build_log_context(job_id=str(job.id), service="onedrive", client_id=str(client_id)),
    )


async def process_folder_rename(db, job, integrations) -> None:
    """
    Rename the dossier folder after its title changed.

    Payload:
      - dossier_id (required): dossier UUID
    """
    from portal.services import folder_service

    dossier_id = _dossier_id(job)
    drive = integrations.drive(db)
    if not await drive.is_ready():
        raise RuntimeError("OneDrive not connected")
    if not await folder_service.rename_dossier_folder(db, drive, dossier_id):
        raise RuntimeError(f"OneDrive folder rename failed for dossier {dossier_id}")


async def process_item_delete(db, job, integrations) -> None:
    """
    Remove the OneDrive copy of a deleted document.

    Payload:
      - file_id (required): OneDrive item id
    """
    from portal.services import document_sync_service

    file_id = (job.payload or {}).get("file_id")
    if not file_id:
        raise ValueError("Missing file_id in onedrive_item_delete payload")

    result = await document_sync_service.delete_remote_file(integrations.drive(db), file_id)
    if not result.success:
        raise RuntimeError(f"OneDrive delete failed: {result.error}")
