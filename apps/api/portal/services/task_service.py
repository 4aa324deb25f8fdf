"""Task service - dossier tasks and the per-admin task list."""

from uuid import UUID

from fastapi import Request
from sqlalchemy import case
from sqlalchemy.orm import Session

from portal.db.enums import TaskPriorite, TaskStatut
from portal.db.models import Task
from portal.db.types import utcnow
from portal.schemas.task import TaskCreate, TaskUpdate
from portal.services import activity_service

MY_TASKS_LIMIT = 20

STATUT_RANK = {
    TaskStatut.A_FAIRE.value: 0,
    TaskStatut.EN_COURS.value: 1,
    TaskStatut.TERMINEE.value: 2,
    TaskStatut.ANNULEE.value: 3,
}
PRIORITE_RANK = {
    TaskPriorite.URGENTE.value: 0,
    TaskPriorite.HAUTE.value: 1,
    TaskPriorite.NORMALE.value: 2,
    TaskPriorite.BASSE.value: 3,
}


def _ordered(query):
    """Open tasks first, most urgent first, then earliest due date."""
    return query.order_by(
        case(STATUT_RANK, value=Task.statut, else_=len(STATUT_RANK)),
        case(PRIORITE_RANK, value=Task.priorite, else_=len(PRIORITE_RANK)),
        Task.date_echeance.asc(),
    )


def get_task(db: Session, task_id: UUID) -> Task | None:
    return db.query(Task).filter(Task.id == task_id).first()


def list_tasks(db: Session, dossier_id: UUID) -> list[Task]:
    return _ordered(db.query(Task).filter(Task.dossier_id == dossier_id)).all()


def list_my_tasks(
    db: Session,
    admin_id: UUID,
    statut: TaskStatut | None = None,
    limit: int = MY_TASKS_LIMIT,
) -> list[Task]:
    """Tasks assigned to ``admin_id``; cancelled ones are hidden unless asked for."""
    query = db.query(Task).filter(Task.assigned_to_id == admin_id)
    if statut:
        query = query.filter(Task.statut == statut.value)
    else:
        query = query.filter(Task.statut != TaskStatut.ANNULEE.value)
    return _ordered(query).limit(limit).all()


def create_task(
    db: Session, dossier_id: UUID, data: TaskCreate, admin_id: UUID, request: Request | None = None
) -> Task:
    task = Task(
        **data.model_dump(exclude={"priorite"}),
        priorite=data.priorite.value,
        dossier_id=dossier_id,
        created_by_id=admin_id,
    )
    db.add(task)
    db.flush()
    activity_service.log_task_created(db, task, admin_id, request)
    db.commit()
    db.refresh(task)
    return task


def _set_statut(task: Task, statut: str) -> None:
    done = TaskStatut.TERMINEE.value
    if statut == done and task.statut != done:
        task.completed_at = utcnow()
    elif statut != done:
        task.completed_at = None
    task.statut = statut


def update_task(
    db: Session, task: Task, data: TaskUpdate, admin_id: UUID, request: Request | None = None
) -> Task:
    """Partial update; completion and reopening get their own timeline entries."""
    update_data = data.model_dump(exclude_unset=True)
    old_statut = task.statut
    changes: list[str] = []

    for field, value in update_data.items():
        if value is None and field in {"titre", "priorite", "statut"}:
            continue
        if hasattr(value, "value"):
            value = value.value
        if getattr(task, field) == value:
            continue
        if field == "statut":
            _set_statut(task, value)
        else:
            setattr(task, field, value)
        changes.append(field)

    done = TaskStatut.TERMINEE.value
    if task.statut == done and old_statut != done:
        activity_service.log_task_completed(db, task, admin_id, request)
    elif old_statut == done and task.statut != done:
        activity_service.log_task_reopened(db, task, admin_id, request)
    other = [c for c in changes if c != "statut"]
    if other:
        activity_service.log_task_updated(db, task, admin_id, other, request)

    db.commit()
    db.refresh(task)
    return task


def complete_task(db: Session, task: Task, admin_id: UUID, request: Request | None = None) -> Task:
    return update_task(db, task, TaskUpdate(statut=TaskStatut.TERMINEE), admin_id, request)


def reopen_task(db: Session, task: Task, admin_id: UUID, request: Request | None = None) -> Task:
    return update_task(db, task, TaskUpdate(statut=TaskStatut.A_FAIRE), admin_id, request)


def delete_task(db: Session, task: Task, admin_id: UUID, request: Request | None = None) -> None:
    activity_service.log_task_deleted(db, task, admin_id, request)
    db.delete(task)
    db.commit()
