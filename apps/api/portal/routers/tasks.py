"""Tasks router. Mixed paths: /dossiers/{id}/tasks and /tasks/{id}."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from portal.core.deps import get_current_admin, get_db, require_csrf_header
from portal.db.enums import TaskStatut
from portal.db.models import Admin
from portal.routers.dossiers import get_dossier_or_404
from portal.schemas.common import MessageResponse
from portal.schemas.task import TaskCreate, TaskRead, TaskUpdate
from portal.services import task_service

router = APIRouter()


def _get_or_404(db: Session, task_id: UUID):
    task = task_service.get_task(db, task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@router.get("/dossiers/{dossier_id}/tasks", response_model=list[TaskRead])
def list_tasks(
    dossier_id: UUID,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    get_dossier_or_404(db, dossier_id)
    return task_service.list_tasks(db, dossier_id)


@router.post(
    "/dossiers/{dossier_id}/tasks",
    response_model=TaskRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_task(
    dossier_id: UUID,
    data: TaskCreate,
    request: Request,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    get_dossier_or_404(db, dossier_id)
    return task_service.create_task(db, dossier_id, data, admin.id, request)


@router.get("/tasks/my", response_model=list[TaskRead])
def my_tasks(
    statut: TaskStatut | None = None,
    limit: int = Query(task_service.MY_TASKS_LIMIT, ge=1, le=100),
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return task_service.list_my_tasks(db, admin.id, statut=statut, limit=limit)


@router.put("/tasks/{task_id}", response_model=TaskRead, dependencies=[Depends(require_csrf_header)])
def update_task(
    task_id: UUID,
    data: TaskUpdate,
    request: Request,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return task_service.update_task(db, _get_or_404(db, task_id), data, admin.id, request)


@router.post("/tasks/{task_id}/complete", response_model=TaskRead, dependencies=[Depends(require_csrf_header)])
def complete_task(
    task_id: UUID,
    request: Request,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return task_service.complete_task(db, _get_or_404(db, task_id), admin.id, request)


@router.post("/tasks/{task_id}/reopen", response_model=TaskRead, dependencies=[Depends(require_csrf_header)])
def reopen_task(
    task_id: UUID,
    request: Request,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return task_service.reopen_task(db, _get_or_404(db, task_id), admin.id, request)


@router.delete("/tasks/{task_id}", response_model=MessageResponse, dependencies=[Depends(require_csrf_header)])
def delete_task(
    task_id: UUID,
    request: Request,
    admin: Admin = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    task_service.delete_task(db, _get_or_404(db, task_id), admin.id, request)
    return MessageResponse(message="Task deleted")
