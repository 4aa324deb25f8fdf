"""
Job service - the jobs table behind provider side effects.

Domain writes enqueue a job and return; `portal.worker` picks due rows up,
runs the registered handler and records the outcome here.
"""

from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy.orm import Session

from portal.db.models import Job
from portal.db.enums import JobStatus, JobType
from portal.db.types import utcnow
from portal.services.http_service import compute_delay


def schedule_job(
    db: Session,
    job_type: JobType,
    payload: dict,
    run_at: datetime | None = None,
    idempotency_key: str | None = None,
) -> Job:
    """Insert a pending job, due now unless `run_at` is given. Keys are unique; use `enqueue_job` to reuse one."""
    job = Job(
        job_type=job_type.value,
        payload=payload,
        run_at=run_at or utcnow(),
        status=JobStatus.PENDING.value,
        idempotency_key=idempotency_key,
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


def enqueue_job(db: Session, job_type: JobType, payload: dict, idempotency_key: str) -> Job:
    """
    Schedule work keyed by ``idempotency_key``, keeping one row per key.

    A pending job with the same key is returned as is. A finished one is
    re-armed with the new payload so the latest write is processed again.
    """
    existing = db.query(Job).filter(Job.idempotency_key == idempotency_key).first()
    if existing is None:
        return schedule_job(db, job_type, payload, idempotency_key=idempotency_key)
    if existing.status == JobStatus.PENDING.value:
        return existing

    existing.job_type = job_type.value
    existing.payload = payload
    existing.status = JobStatus.PENDING.value
    existing.run_at = utcnow()
    existing.attempts = 0
    existing.last_error = None
    existing.completed_at = None
    db.commit()
    db.refresh(existing)
    return existing


def get_pending_jobs(db: Session, limit: int = 10) -> list[Job]:
    """Due pending jobs, oldest first."""
    return (
        db.query(Job)
        .filter(
            Job.status == JobStatus.PENDING.value,
            Job.run_at <= utcnow(),
        )
        .order_by(Job.run_at)
        .limit(limit)
        .all()
    )


def get_job(db: Session, job_id: UUID) -> Job | None:
    return db.query(Job).filter(Job.id == job_id).first()


def list_jobs(
    db: Session,
    status: JobStatus | None = None,
    job_type: JobType | None = None,
    limit: int = 50,
) -> list[Job]:
    """List jobs with optional filters, newest first."""
    query = db.query(Job)
    if status:
        query = query.filter(Job.status == status.value)
    if job_type:
        query = query.filter(Job.job_type == job_type.value)
    return query.order_by(Job.created_at.desc()).limit(limit).all()


def mark_job_running(db: Session, job: Job) -> Job:
    """Mark a job as running (increment attempts)."""
    job.status = JobStatus.RUNNING.value
    job.attempts += 1
    db.commit()
    db.refresh(job)
    return job


def mark_job_completed(db: Session, job: Job) -> Job:
    """Mark a job as completed."""
    job.status = JobStatus.COMPLETED.value
    job.completed_at = utcnow()
    job.last_error = None
    db.commit()
    db.refresh(job)
    return job


def mark_job_failed(db: Session, job: Job, error: str) -> Job:
    """
    Mark a job as failed.

    If attempts < max_attempts, reset to pending and push run_at back by
    the retry backoff for the attempt number.
    """
    job.last_error = error
    if job.attempts < job.max_attempts:
        job.status = JobStatus.PENDING.value
        job.run_at = utcnow() + _backoff(job.attempts)
    else:
        job.status = JobStatus.FAILED.value
    db.commit()
    db.refresh(job)
    return job


def _backoff(attempts: int) -> timedelta:
    return timedelta(seconds=compute_delay(max(attempts, 1)))
