from typing import List

from fastapi import APIRouter, Depends, Body

from ..auth.security import get_current_user, require_admin
from ..deps import get_lifecycle, get_repository
from ..models.models import User
from ..schemas.tasks import (
    DriverTaskResponse,
    QualityCheckDayResponse,
    QualityCheckResponse,
)
from ..services.lifecycle import TaskLifecycle
from ..services.repository import Repository


router = APIRouter(tags=["quality"])


@router.get("/quality-checks", response_model=List[QualityCheckResponse])
def list_quality_checks(repo: Repository = Depends(get_repository), user: User = Depends(get_current_user)):
    return repo.list_quality_checks()


@router.post("/quality-checks", response_model=QualityCheckResponse, status_code=201)
def create_quality_check(
    payload: dict = Body(...),
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    payload.setdefault("checked_by", user.initials)
    return lifecycle.create_quality_check(payload)


@router.get("/quality-checks/date/{date}", response_model=List[QualityCheckDayResponse])
def quality_checks_for_date(
    date: str,
    repo: Repository = Depends(get_repository),
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    lifecycle.check_date(date)
    checks = repo.quality_checks_for_date(date)
    tasks = repo.driver_tasks_for_checks(c.id for c in checks)
    out = []
    for c in checks:
        item = QualityCheckDayResponse.model_validate(c)
        task = tasks.get(c.id)
        if task is not None:
            item.driver_task_completed = task.completed
            item.driver_task_completed_by = task.completed_by
        out.append(item)
    return out


@router.delete("/quality-checks/{check_id}")
def delete_quality_check(
    check_id: int,
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
    admin: User = Depends(require_admin),
):
    lifecycle.delete_quality_check(check_id)
    return {"status": "ok"}


@router.get("/driver-tasks", response_model=List[DriverTaskResponse])
def list_driver_tasks(repo: Repository = Depends(get_repository), user: User = Depends(get_current_user)):
    return repo.list_driver_tasks()


@router.patch("/driver-tasks/{task_id}", response_model=DriverTaskResponse)
def update_driver_task(
    task_id: int,
    payload: dict = Body(...),
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    return lifecycle.update_driver_task(task_id, payload, actor=user.initials)
