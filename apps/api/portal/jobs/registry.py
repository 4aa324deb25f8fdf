"""Job handler registry."""

from __future__ import annotations

from typing import Awaitable, Callable, Mapping

from portal.db.enums import JobType
from portal.jobs.handlers import calendar, onedrive

JobHandler = Callable[[object, object, object], Awaitable[None]]

JOB_HANDLERS: Mapping[str, JobHandler] = {
    JobType.ONEDRIVE_FOLDER_CREATE.value: onedrive.process_folder_create,
    JobType.ONEDRIVE_CLIENT_FOLDER_CREATE.value: onedrive.process_client_folder_create,
    JobType.ONEDRIVE_FOLDER_RENAME.value: onedrive.process_folder_rename,
    JobType.ONEDRIVE_ITEM_DELETE.value: onedrive.process_item_delete,
    JobType.CALENDAR_EVENT_SYNC.value: calendar.process_event_sync,
    JobType.CALENDAR_EVENT_DELETE.value: calendar.process_event_delete,
}


def resolve_job_handler(job_type: str) -> JobHandler:
    handler = JOB_HANDLERS.get(job_type)
    if not handler:
        raise ValueError(f"Unknown job type: {job_type}")
    return handler
