from typing import List

from fastapi import APIRouter, Depends, Body

from ..auth.security import get_current_user, require_admin
from ..deps import get_repository, get_user_service
from ..models.models import User
from ..schemas.users import AdminUserResponse, DriverResponse
from ..services.errors import NotFoundError
from ..services.repository import Repository
from ..services.users import UserService


router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=List[AdminUserResponse])
def list_users(repo: Repository = Depends(get_repository), admin: User = Depends(require_admin)):
    return repo.list_users()


@router.get("/drivers", response_model=List[DriverResponse])
def list_drivers(users: UserService = Depends(get_user_service), user: User = Depends(get_current_user)):
    return [
        DriverResponse(id=d.id, initials=d.initials, max_daily_hours=d.max_daily_hours, hourly_rate=d.hourly_rate)
        for d in users.drivers()
    ]


@router.post("/check-pin")
def check_pin(
    payload: dict = Body(...),
    users: UserService = Depends(get_user_service),
    admin: User = Depends(require_admin),
):
    return {"available": users.check_pin(payload)}


@router.get("/{user_id}", response_model=AdminUserResponse)
def get_user(user_id: int, repo: Repository = Depends(get_repository), admin: User = Depends(require_admin)):
    user = repo.get_user(user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


@router.post("", response_model=AdminUserResponse, status_code=201)
def create_user(
    payload: dict = Body(...),
    users: UserService = Depends(get_user_service),
    admin: User = Depends(require_admin),
):
    return users.create_user(payload)


@router.patch("/{user_id}", response_model=AdminUserResponse)
def update_user(
    user_id: int,
    payload: dict = Body(...),
    users: UserService = Depends(get_user_service),
    admin: User = Depends(require_admin),
):
    return users.update_user(user_id, payload)


@router.delete("/{user_id}")
def delete_user(
    user_id: int,
    users: UserService = Depends(get_user_service),
    admin: User = Depends(require_admin),
):
    users.delete_user(user_id)
    return {"status": "ok"}
