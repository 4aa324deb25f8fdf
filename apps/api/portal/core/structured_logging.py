"""Logging setup and structured log context helpers."""

import logging
from typing import Any

from portal.core.config import settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once per process (API, worker, CLI)."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # httpx logs every request line at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_log_context(
    *,
    job_id: str | None = None,
    job_type: str | None = None,
    service: str | None = None,
    dossier_id: str | None = None,
    attempt: int | None = None,
) -> dict[str, Any]:
    """Return a log context dict suitable for ``extra=``."""
    context: dict[str, Any] = {}
    if job_id:
        context["job_id"] = job_id
    if job_type:
        context["job_type"] = job_type
    if service:
        context["service"] = service
    if dossier_id:
        context["dossier_id"] = dossier_id
    if attempt is not None:
        context["attempt"] = attempt
    return context
