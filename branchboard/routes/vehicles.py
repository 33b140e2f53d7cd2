from typing import List, Optional

from fastapi import APIRouter, Depends, Body, Query

from ..auth.security import get_current_user
from ..config import settings
from ..deps import get_lifecycle, get_repository
from ..models.models import User, Vehicle
from ..schemas.bodyshop import CommentResponse, VehicleDetailResponse, VehicleResponse
from ..services.errors import NotFoundError
from ..services.lifecycle import TaskLifecycle
from ..services.repository import Repository


router = APIRouter(prefix="/vehicles", tags=["bodyshop"])


def _vehicle_out(vehicle: Vehicle, lifecycle: TaskLifecycle, commented: set) -> dict:
    data = {
        "id": vehicle.id,
        "license_plate": vehicle.license_plate,
        "name": vehicle.name,
        "notes": vehicle.notes,
        "is_ev": vehicle.is_ev,
        "ready_for_collection": vehicle.ready_for_collection,
        "collection_todo_id": vehicle.collection_todo_id,
        "is_past": vehicle.is_past,
        "countdown_start": vehicle.countdown_start,
        "created_at": vehicle.created_at,
        "has_comment_today": vehicle.id in commented,
    }
    data.update(lifecycle.vehicle_countdown(vehicle))
    return data


@router.get("", response_model=List[VehicleResponse])
def list_vehicles(
    filter: str = Query("all", pattern="^(all|expired)$"),
    search: Optional[str] = None,
    repo: Repository = Depends(get_repository),
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    rows = repo.list_vehicles(filter=filter, search=search, countdown_days=settings.vehicle_countdown_days)
    commented = repo.vehicle_ids_with_comment(repo.clock.today())
    return [_vehicle_out(v, lifecycle, commented) for v in rows]


@router.get("/{vehicle_id}", response_model=VehicleDetailResponse)
def get_vehicle(
    vehicle_id: int,
    repo: Repository = Depends(get_repository),
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    vehicle = repo.get_vehicle(vehicle_id)
    if vehicle is None:
        raise NotFoundError("Vehicle", vehicle_id)
    out = _vehicle_out(vehicle, lifecycle, repo.vehicle_ids_with_comment(repo.clock.today()))
    out["comments"] = [CommentResponse.model_validate(c) for c in repo.list_comments(vehicle_id)]
    return out


@router.post("", response_model=VehicleResponse, status_code=201)
def create_vehicle(
    payload: dict = Body(...),
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    vehicle = lifecycle.create_vehicle(payload)
    return _vehicle_out(vehicle, lifecycle, set())


@router.patch("/{vehicle_id}", response_model=VehicleResponse)
def update_vehicle(
    vehicle_id: int,
    payload: dict = Body(...),
    repo: Repository = Depends(get_repository),
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    vehicle = lifecycle.apply_vehicle_update(vehicle_id, payload)
    return _vehicle_out(vehicle, lifecycle, repo.vehicle_ids_with_comment(repo.clock.today()))


@router.delete("/{vehicle_id}")
def delete_vehicle(
    vehicle_id: int,
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    lifecycle.delete_vehicle(vehicle_id)
    return {"status": "ok"}


@router.get("/{vehicle_id}/comments", response_model=List[CommentResponse])
def list_comments(
    vehicle_id: int,
    repo: Repository = Depends(get_repository),
    user: User = Depends(get_current_user),
):
    if repo.get_vehicle(vehicle_id) is None:
        raise NotFoundError("Vehicle", vehicle_id)
    return repo.list_comments(vehicle_id)


@router.post("/{vehicle_id}/comments", response_model=CommentResponse, status_code=201)
def add_comment(
    vehicle_id: int,
    payload: dict = Body(...),
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    return lifecycle.add_vehicle_comment(vehicle_id, payload, actor=user.initials)
