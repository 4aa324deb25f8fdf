"""Jobs router - view background jobs (super admin only)."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from portal.core.deps import get_db, require_super_admin
from portal.db.enums import JobStatus, JobType
from portal.schemas.job import JobListItem, JobRead
from portal.services import job_service

router = APIRouter(dependencies=[Depends(require_super_admin)])


@router.get("", response_model=list[JobListItem])
def list_jobs(
    status: JobStatus | None = None,
    job_type: JobType | None = None,
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """Recent jobs, newest first."""
    return job_service.list_jobs(db, status=status, job_type=job_type, limit=limit)


@router.get("/{job_id}", response_model=JobRead)
def get_job(job_id: UUID, db: Session = Depends(get_db)):
    job = job_service.get_job(db, job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job
