from typing import List, Optional

from pydantic import BaseModel

from .daily import FuturePlanningResponse, UpgradeVehicleResponse


class TimedriverStatus(BaseModel):
    is_done: bool
    details: Optional[str] = None


class UpgradeStatus(BaseModel):
    is_done: bool
    has_pending: bool
    is_overdue: bool
    sold: int
    total: int
    pending_vehicles: List[UpgradeVehicleResponse] = []


class FlowStatus(BaseModel):
    is_done: bool
    completed: int
    pending: int
    total: int


class TodoStatus(BaseModel):
    is_done: bool
    completed: int
    total: int
    postponed: int
    postponed_to_future: int
    postponed_from_past: int


class QualityStatus(BaseModel):
    is_done: bool
    total_checks: int
    passed_checks: int
    target: int
    incomplete_tasks: int


class BodyshopStatus(BaseModel):
    is_done: bool
    vehicles_without_comment: int
    total: int


class FutureStatus(BaseModel):
    is_done: bool
    is_locked: bool
    data: Optional[FuturePlanningResponse] = None


class DailyStatus(BaseModel):
    date: str
    timedriver: TimedriverStatus
    upgrade: UpgradeStatus
    flow: FlowStatus
    todo: TodoStatus
    quality: QualityStatus
    bodyshop: BodyshopStatus
    future: FutureStatus
    # Weighted share (0..1) each configured module contributed
    contributions: dict
    overall_progress: int
    has_postponed_tasks: bool
