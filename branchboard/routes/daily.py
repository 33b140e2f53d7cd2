from typing import List, Optional

from fastapi import APIRouter, Depends, Body, Query

from ..auth.security import get_current_user, require_admin
from ..deps import get_ledger, get_lifecycle, get_repository
from ..models.models import User
from ..schemas.daily import (
    KPI_KEYS,
    FuturePlanningResponse,
    KpiMetricResponse,
    ModuleStatusResponse,
    SettingResponse,
    TimedriverResponse,
    UpgradeVehicleResponse,
)
from ..services.errors import NotFoundError
from ..services.lifecycle import BUDGET_SETTING_KEY, TaskLifecycle
from ..services.module_ledger import ModuleStatusLedger
from ..services.repository import Repository


router = APIRouter(tags=["daily"])


# ---------- module status ----------
@router.get("/module-status", response_model=List[ModuleStatusResponse])
def get_module_statuses(
    date: Optional[str] = Query(None),
    ledger: ModuleStatusLedger = Depends(get_ledger),
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    day = lifecycle.check_date(date) if date else lifecycle.clock.today()
    return ledger.get_statuses(day)


@router.post("/module-status", response_model=ModuleStatusResponse)
def set_module_status(
    payload: dict = Body(...),
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    return lifecycle.set_module_status(payload, actor=user.initials)


# ---------- settings ----------
@router.get("/settings/{key}", response_model=SettingResponse)
def get_setting(
    key: str,
    repo: Repository = Depends(get_repository),
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    row = repo.get_setting(key)
    if row is not None:
        return SettingResponse(key=row.key, value=row.value, updated_at=row.updated_at)
    if key == BUDGET_SETTING_KEY:
        return SettingResponse(key=key, value=str(lifecycle.budget_per_rental()))
    raise NotFoundError("Setting", key)


@router.put("/settings/{key}", response_model=SettingResponse)
def put_setting(
    key: str,
    payload: dict = Body(...),
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
    admin: User = Depends(require_admin),
):
    row = lifecycle.set_setting(key, payload)
    return SettingResponse(key=row.key, value=row.value, updated_at=row.updated_at)


# ---------- timedriver ----------
@router.post("/timedriver/calculate", response_model=TimedriverResponse)
def calculate_timedriver(
    payload: dict = Body(...),
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    return lifecycle.calculate_timedriver(payload, actor=user.initials)


@router.get("/timedriver/{date}", response_model=TimedriverResponse)
def get_timedriver(
    date: str,
    repo: Repository = Depends(get_repository),
    user: User = Depends(get_current_user),
):
    calc = repo.get_timedriver_calculation(date)
    if calc is None:
        raise NotFoundError("Timedriver calculation", date)
    return calc


@router.delete("/timedriver/{date}")
def delete_timedriver(
    date: str,
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    lifecycle.delete_timedriver_calculation(date)
    return {"status": "ok"}


# ---------- upgrade vehicles ----------
@router.get("/upgrade-vehicles", response_model=List[UpgradeVehicleResponse])
def list_upgrade_vehicles(
    date: Optional[str] = Query(None),
    repo: Repository = Depends(get_repository),
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    if date:
        return repo.upgrade_vehicles_for_date(lifecycle.check_date(date))
    return repo.list_upgrade_vehicles()


@router.get("/upgrade-vehicles/pending", response_model=List[UpgradeVehicleResponse])
def pending_upgrade_vehicles(
    date: Optional[str] = Query(None),
    repo: Repository = Depends(get_repository),
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    day = lifecycle.check_date(date) if date else lifecycle.clock.today()
    return repo.pending_upgrade_vehicles(day)


@router.post("/upgrade-vehicles", response_model=UpgradeVehicleResponse, status_code=201)
def create_upgrade_vehicle(
    payload: dict = Body(...),
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    return lifecycle.create_upgrade_vehicle(payload, actor=user.initials)


@router.patch("/upgrade-vehicles/{vehicle_id}", response_model=UpgradeVehicleResponse)
def update_upgrade_vehicle(
    vehicle_id: int,
    payload: dict = Body(...),
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    return lifecycle.update_upgrade_vehicle(vehicle_id, payload, actor=user.initials)


@router.delete("/upgrade-vehicles/{vehicle_id}")
def delete_upgrade_vehicle(
    vehicle_id: int,
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    lifecycle.delete_upgrade_vehicle(vehicle_id)
    return {"status": "ok"}


# ---------- future planning ----------
@router.get("/future-planning/{date}", response_model=FuturePlanningResponse)
def get_future_planning(
    date: str,
    repo: Repository = Depends(get_repository),
    user: User = Depends(get_current_user),
):
    row = repo.get_future_planning(date)
    if row is None:
        raise NotFoundError("Future planning", date)
    return row


@router.post("/future-planning", response_model=FuturePlanningResponse)
def save_future_planning(
    payload: dict = Body(...),
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    return lifecycle.save_future_planning(payload, actor=user.initials)


@router.delete("/future-planning/{date}")
def delete_future_planning(
    date: str,
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    lifecycle.delete_future_planning(date)
    return {"status": "ok"}


# ---------- KPI metrics ----------
@router.get("/kpi-metrics", response_model=List[KpiMetricResponse])
def list_kpi_metrics(repo: Repository = Depends(get_repository), user: User = Depends(get_current_user)):
    return [m for m in repo.list_kpi_metrics() if m.key in KPI_KEYS]


@router.put("/kpi-metrics/{key}", response_model=KpiMetricResponse)
def put_kpi_metric(
    key: str,
    payload: dict = Body(...),
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
    admin: User = Depends(require_admin),
):
    return lifecycle.upsert_kpi_metric(key, payload, actor=admin.initials)
