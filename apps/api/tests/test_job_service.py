from portal.db.enums import JobStatus, JobType
from portal.db.models import Job
from portal.services import job_service


def _enqueue(db, key="onedrive_folder_create:1", payload=None):
    return job_service.enqueue_job(db, JobType.ONEDRIVE_FOLDER_CREATE, payload or {"dossier_id": "1"}, key)


def test_enqueue_keeps_one_pending_row_per_key(db):
    first = _enqueue(db)
    second = _enqueue(db, payload={"dossier_id": "other"})

    assert first.id == second.id
    assert db.query(Job).count() == 1
    assert second.payload == {"dossier_id": "1"}


def test_enqueue_rearms_finished_job(db):
    job = _enqueue(db)
    job_service.mark_job_running(db, job)
    job_service.mark_job_completed(db, job)

    rearmed = _enqueue(db, payload={"dossier_id": "2"})

    assert rearmed.id == job.id
    assert rearmed.status == JobStatus.PENDING.value
    assert rearmed.attempts == 0
    assert rearmed.completed_at is None
    assert rearmed.payload == {"dossier_id": "2"}


def test_failed_attempt_is_requeued_until_max_attempts(db):
    job = _enqueue(db)

    for attempt in range(1, job.max_attempts + 1):
        job_service.mark_job_running(db, job)
        job_service.mark_job_failed(db, job, f"boom {attempt}")
        expected = JobStatus.PENDING if attempt < job.max_attempts else JobStatus.FAILED
        assert job.status == expected.value

    assert job.attempts == 3
    assert job.last_error == "boom 3"


def test_pending_jobs_are_due_only(db):
    from datetime import timedelta

    from portal.db.types import utcnow

    due = _enqueue(db, key="a")
    job_service.schedule_job(db, JobType.ONEDRIVE_FOLDER_CREATE, {}, run_at=utcnow() + timedelta(hours=1))

    pending = job_service.get_pending_jobs(db, limit=10)

    assert [j.id for j in pending] == [due.id]


# =============================================================================
# Jobs router
# =============================================================================

async def test_jobs_listing_is_super_admin_only(admin_client):
    response = await admin_client.get("/api/admin/jobs")
    assert response.status_code == 403


async def test_jobs_listing_filters_by_status(super_admin_client, db):
    done = _enqueue(db, key="onedrive_folder_create:done")
    job_service.mark_job_completed(db, done)
    pending = _enqueue(db, key="onedrive_folder_create:pending")

    response = await super_admin_client.get("/api/admin/jobs", params={"status": "pending"})

    assert response.status_code == 200
    assert [item["id"] for item in response.json()] == [str(pending.id)]


async def test_job_detail_shows_payload_and_error(super_admin_client, db):
    job = _enqueue(db)
    job_service.mark_job_failed(db, job, "provider down")

    response = await super_admin_client.get(f"/api/admin/jobs/{job.id}")

    assert response.status_code == 200
    assert response.json()["payload"] == {"dossier_id": "1"}
    assert response.json()["last_error"] == "provider down"


async def test_unknown_job_is_404(super_admin_client):
    response = await super_admin_client.get("/api/admin/jobs/00000000-0000-0000-0000-000000000000")
    assert response.status_code == 404
