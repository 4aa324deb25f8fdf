"""
Background worker for processing scheduled jobs.

Usage:
    python -m portal.worker

The worker polls the jobs table and runs provider side effects (OneDrive
folders, Google Calendar pushes) that domain writes enqueue. Run it as a
separate process next to the API.
"""

import asyncio
import logging

from portal.core.config import settings
from portal.core.providers import Integrations, build_integrations
from portal.core.structured_logging import build_log_context, configure_logging
from portal.db.session import SessionLocal
from portal.jobs.registry import resolve_job_handler
from portal.services import job_service

logger = logging.getLogger(__name__)


async def process_job(db, job, integrations: Integrations) -> None:
    """Process a single job based on its type."""
    logger.info(
        "Processing job %s (type=%s, attempt=%s)",
        job.id,
        job.job_type,
        job.attempts,
        extra=build_log_context(job_id=str(job.id), job_type=job.job_type, attempt=job.attempts),
    )
    handler = resolve_job_handler(job.job_type)
    await handler(db, job, integrations)


async def run_pending_jobs(db, integrations: Integrations, limit: int | None = None) -> int:
    """Run one batch of due jobs. Returns how many were picked up."""
    jobs = job_service.get_pending_jobs(db, limit=limit or settings.WORKER_BATCH_SIZE)
    if jobs:
        logger.info("Found %s pending jobs", len(jobs))

    for job in jobs:
        try:
            job_service.mark_job_running(db, job)
            await process_job(db, job, integrations)
            job_service.mark_job_completed(db, job)
            logger.info("Job %s completed successfully", job.id)
        except Exception as e:
            # Handler may have left the session mid-transaction
            db.rollback()
            job_service.mark_job_failed(db, job, str(e))
            logger.error(
                "Job %s failed: %s",
                job.id,
                e,
                extra=build_log_context(job_id=str(job.id), job_type=job.job_type, attempt=job.attempts),
            )
    return len(jobs)


async def worker_loop(integrations: Integrations) -> None:
    """Main worker loop - polls for and processes pending jobs."""
    logger.info(
        "Worker starting (poll interval: %ss, batch size: %s)",
        settings.WORKER_POLL_INTERVAL_SECONDS,
        settings.WORKER_BATCH_SIZE,
    )
    if not settings.microsoft_configured:
        logger.warning("Microsoft OAuth not configured - OneDrive jobs will fail")
    if not settings.google_configured:
        logger.warning("Google OAuth not configured - calendar jobs will fail")

    while True:
        with SessionLocal() as db:
            try:
                await run_pending_jobs(db, integrations)
            except Exception:
                logger.exception("Error in worker loop")
        await asyncio.sleep(settings.WORKER_POLL_INTERVAL_SECONDS)


async def _run() -> None:
    integrations = build_integrations()
    try:
        await worker_loop(integrations)
    finally:
        await integrations.aclose()


def main() -> None:
    """Entry point for the worker."""
    configure_logging()
    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        logger.info("Worker shutting down")
    except Exception:
        logger.exception("Worker crashed", extra=build_log_context(service="worker"))
        raise


if __name__ == "__main__":
    main()
