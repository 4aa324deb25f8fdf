"""
Worker: handler registry, job outcomes and the provider handlers.
"""
import pytest

from portal import worker
from portal.db.enums import JobStatus, JobType
from portal.db.models import Dossier, Evenement, Job
from portal.jobs.registry import resolve_job_handler
from portal.services import job_service
from portal.services.oauth_service import TokenSet


def test_every_job_type_has_a_handler():
    for job_type in JobType:
        assert callable(resolve_job_handler(job_type.value))


def test_unknown_job_type_raises():
    with pytest.raises(ValueError):
        resolve_job_handler("nope")


async def test_process_job_uses_registry(monkeypatch):
    calls: dict[str, str] = {}

    async def stub_handler(_db, job, _integrations):
        calls["job_type"] = job.job_type

    def stub_resolver(job_type: str):
        calls["resolved"] = job_type
        return stub_handler

    monkeypatch.setattr(worker, "resolve_job_handler", stub_resolver)

    job = type(
        "Job",
        (),
        {"id": "job-id", "job_type": JobType.CALENDAR_EVENT_SYNC.value, "attempts": 0, "payload": {}},
    )()

    await worker.process_job(None, job, None)

    assert calls["resolved"] == JobType.CALENDAR_EVENT_SYNC.value
    assert calls["job_type"] == JobType.CALENDAR_EVENT_SYNC.value


async def test_failing_handler_requeues_job(monkeypatch, db, integrations):
    async def failing(_db, _job, _integrations):
        raise RuntimeError("provider down")

    monkeypatch.setattr(worker, "resolve_job_handler", lambda _: failing)
    job = job_service.enqueue_job(db, JobType.ONEDRIVE_FOLDER_CREATE, {"dossier_id": "x"}, "k")

    processed = await worker.run_pending_jobs(db, integrations)

    assert processed == 1
    db.refresh(job)
    assert job.status == JobStatus.PENDING.value
    assert job.attempts == 1
    assert job.last_error == "provider down"


async def test_invalid_payload_fails_job(db, integrations):
    job = job_service.enqueue_job(db, JobType.ONEDRIVE_FOLDER_CREATE, {}, "missing-payload")

    await worker.run_pending_jobs(db, integrations)

    db.refresh(job)
    assert "Missing dossier_id" in job.last_error


# =============================================================================
# Provider handlers over the mocked APIs
# =============================================================================

def _connect(db, tokens):
    tokens.save_tokens(db, TokenSet(access_token="token", refresh_token="refresh", expires_in=3600, scope=None))


async def test_folder_create_job_stores_folder(db, integrations, providers, test_dossier):
    _connect(db, integrations.microsoft)
    providers.add(
        "PUT",
        "/me/drive/root:",
        {"id": "folder-99", "name": "dossier", "folder": {}},
    )
    job_service.enqueue_job(
        db,
        JobType.ONEDRIVE_FOLDER_CREATE,
        {"dossier_id": str(test_dossier.id)},
        f"onedrive_folder_create:{test_dossier.id}",
    )

    await worker.run_pending_jobs(db, integrations)

    assert db.query(Job).one().status == JobStatus.COMPLETED.value
    assert db.get(Dossier, test_dossier.id).onedrive_folder_id == "folder-99"


async def test_event_sync_job_without_google_account_is_retried(db, integrations, test_dossier):
    event = Evenement(
        titre="Audience",
        type="audience",
        date_debut=test_dossier.created_at,
        date_fin=test_dossier.created_at,
    )
    db.add(event)
    db.commit()
    job_service.enqueue_job(
        db, JobType.CALENDAR_EVENT_SYNC, {"evenement_id": str(event.id)}, f"calendar_event_sync:{event.id}"
    )

    await worker.run_pending_jobs(db, integrations)

    job = db.query(Job).one()
    assert job.status == JobStatus.PENDING.value
    assert "Google Calendar sync failed" in job.last_error


async def test_event_delete_job_treats_missing_remote_as_done(db, integrations, providers):
    _connect(db, integrations.google)
    job_service.enqueue_job(
        db, JobType.CALENDAR_EVENT_DELETE, {"google_event_id": "gone"}, "calendar_event_delete:gone"
    )

    await worker.run_pending_jobs(db, integrations)

    assert db.query(Job).one().status == JobStatus.COMPLETED.value
    assert providers.calls("DELETE", "/events/gone")


async def test_client_folder_job_creates_folder_under_clients_root(db, integrations, providers, test_client):
    _connect(db, integrations.microsoft)
    providers.add("PUT", "/me/drive/root:", {"id": "folder-7", "name": "client", "folder": {}})
    job_service.enqueue_job(
        db,
        JobType.ONEDRIVE_CLIENT_FOLDER_CREATE,
        {"client_id": str(test_client.id)},
        f"onedrive_client_folder_create:{test_client.id}",
    )

    await worker.run_pending_jobs(db, integrations)

    assert db.query(Job).one().status == JobStatus.COMPLETED.value
    assert any(test_client.nom in str(r.url) for r in providers.calls("PUT", "/me/drive/root:"))
