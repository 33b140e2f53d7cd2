from typing import List

from fastapi import APIRouter, Depends, HTTPException, Body

from ..auth.security import get_current_user, require_admin
from ..deps import get_lifecycle, get_repository
from ..models.models import User
from ..schemas.tasks import TodoResponse
from ..services.lifecycle import TaskLifecycle
from ..services.repository import Repository


router = APIRouter(prefix="/todos", tags=["todos"])


@router.get("", response_model=List[TodoResponse])
def list_todos(repo: Repository = Depends(get_repository), user: User = Depends(get_current_user)):
    return repo.list_todos()


@router.post("", response_model=TodoResponse, status_code=201)
def create_todo(
    payload: dict = Body(...),
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
    admin: User = Depends(require_admin),
):
    return lifecycle.create_todo(payload)


@router.patch("/{todo_id}", response_model=TodoResponse)
def update_todo(
    todo_id: int,
    payload: dict = Body(...),
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    # Staff tick todos off; only the Branch Manager edits them
    if not user.is_admin and set(payload) - {"completed", "completed_by"}:
        raise HTTPException(status_code=403, detail="Forbidden")
    return lifecycle.apply_todo_update(todo_id, payload, actor=user.initials)


@router.post("/{todo_id}/postpone", response_model=TodoResponse)
def postpone_todo(
    todo_id: int,
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    return lifecycle.postpone_todo(todo_id)


@router.delete("/{todo_id}")
def delete_todo(
    todo_id: int,
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
    admin: User = Depends(require_admin),
):
    lifecycle.delete_todo(todo_id)
    return {"status": "ok"}
