from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ..services.plates import normalize_plate
from .users import UserRole


class FlowTaskType(str, Enum):
    refuelling = "refuelling"
    cleaning = "cleaning"
    adblue = "AdBlue"
    delivery = "delivery"
    collection = "collection"
    water = "water"
    fast_cleaning = "fast cleaning"
    bodyshop_collection = "Bodyshop collection"
    bodyshop_delivery = "Bodyshop delivery"
    live_checkin = "LiveCheckin"
    checkin_parking = "only CheckIN & Parking"


HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class _PlateMixin(BaseModel):
    @field_validator("license_plate", check_fields=False)
    @classmethod
    def _plate(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = normalize_plate(v)
        if not v:
            raise ValueError("license_plate is required")
        return v


# Todos
class TodoCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    assigned_to: List[UserRole] = []
    is_recurring: bool = False
    priority: int = Field(default=0, ge=0, le=3)

    class Config:
        use_enum_values = True


class TodoUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    completed: Optional[bool] = None
    completed_by: Optional[str] = None
    priority: Optional[int] = Field(default=None, ge=0, le=3)
    assigned_to: Optional[List[UserRole]] = None

    class Config:
        use_enum_values = True


class TodoResponse(BaseModel):
    id: int
    title: str
    assigned_to: List[str]
    completed: bool
    completed_by: Optional[str] = None
    completed_at: Optional[datetime] = None
    vehicle_id: Optional[int] = None
    is_system_generated: bool
    is_recurring: bool
    priority: int
    postponed_to_date: Optional[str] = None
    postpone_count: int

    class Config:
        from_attributes = True


# Quality checks / driver tasks
class QualityCheckCreate(_PlateMixin):
    license_plate: str
    is_ev: bool = False
    passed: bool
    comment: Optional[str] = None
    checked_by: Optional[str] = None


class QualityCheckResponse(BaseModel):
    id: int
    license_plate: str
    is_ev: bool
    passed: bool
    comment: Optional[str] = None
    checked_by: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class QualityCheckDayResponse(QualityCheckResponse):
    driver_task_completed: Optional[bool] = None
    driver_task_completed_by: Optional[str] = None


class DriverTaskUpdate(BaseModel):
    completed: Optional[bool] = None
    completed_by: Optional[str] = None


class DriverTaskResponse(BaseModel):
    id: int
    quality_check_id: int
    license_plate: str
    description: str
    completed: bool
    completed_by: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


# Flow tasks
class FlowTaskCreate(_PlateMixin):
    license_plate: str
    is_ev: bool = False
    task_type: FlowTaskType
    need_at: Optional[str] = Field(default=None, pattern=HHMM_PATTERN)
    created_by: Optional[str] = None

    class Config:
        use_enum_values = True


class FlowTaskUpdate(_PlateMixin):
    license_plate: Optional[str] = None
    is_ev: Optional[bool] = None
    task_type: Optional[FlowTaskType] = None
    need_at: Optional[str] = Field(default=None, pattern=HHMM_PATTERN)
    completed: Optional[bool] = None
    completed_by: Optional[str] = None
    needs_retry: Optional[bool] = None

    class Config:
        use_enum_values = True


class FlowTaskReorder(BaseModel):
    task_ids: List[int]


class FlowTaskResponse(BaseModel):
    id: int
    license_plate: str
    is_ev: bool
    task_type: str
    priority: int
    completed: bool
    completed_by: Optional[str] = None
    completed_at: Optional[datetime] = None
    needs_retry: bool
    need_at: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
