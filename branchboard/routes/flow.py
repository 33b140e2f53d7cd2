from typing import List

from fastapi import APIRouter, Depends, Body

from ..auth.security import get_current_user, require_admin_or_counter
from ..deps import get_lifecycle, get_repository
from ..models.models import User
from ..schemas.tasks import FlowTaskResponse
from ..services.lifecycle import TaskLifecycle
from ..services.repository import Repository


router = APIRouter(prefix="/flow-tasks", tags=["flow"])


@router.get("", response_model=List[FlowTaskResponse])
def list_flow_tasks(repo: Repository = Depends(get_repository), user: User = Depends(get_current_user)):
    return repo.list_flow_tasks()


@router.post("", response_model=FlowTaskResponse, status_code=201)
def create_flow_task(
    payload: dict = Body(...),
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
    user: User = Depends(require_admin_or_counter),
):
    return lifecycle.create_flow_task(payload, actor=user.initials)


@router.post("/reorder", response_model=List[FlowTaskResponse])
def reorder_flow_tasks(
    payload: dict = Body(...),
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
    user: User = Depends(require_admin_or_counter),
):
    return lifecycle.reorder_flow_tasks(payload)


@router.patch("/{task_id}", response_model=FlowTaskResponse)
def update_flow_task(
    task_id: int,
    payload: dict = Body(...),
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    return lifecycle.update_flow_task(task_id, payload, actor=user.initials)


@router.delete("/{task_id}")
def delete_flow_task(
    task_id: int,
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
    user: User = Depends(require_admin_or_counter),
):
    lifecycle.delete_flow_task(task_id)
    return {"status": "ok"}
