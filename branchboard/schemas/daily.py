from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ..services.plates import normalize_plate


DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


# Module status ledger
class ModuleStatusUpdate(BaseModel):
    module_name: str = Field(min_length=1, max_length=50)
    date: str = Field(pattern=DATE_PATTERN)
    is_done: bool
    done_by: Optional[str] = None


class ModuleStatusResponse(BaseModel):
    id: int
    module_name: str
    date: str
    is_done: bool
    done_at: Optional[datetime] = None
    done_by: Optional[str] = None

    class Config:
        from_attributes = True


# Settings
class SettingValue(BaseModel):
    value: str


class SettingResponse(BaseModel):
    key: str
    value: Optional[str] = None
    updated_at: Optional[datetime] = None


# Timedriver (labor budget)
class TimedriverCalculate(BaseModel):
    date: Optional[str] = Field(default=None, pattern=DATE_PATTERN)
    rentals: int = Field(gt=0)
    driver_ids: List[int] = Field(min_length=1)
    budget_per_rental: Optional[float] = Field(default=None, gt=0)


class DriverAllocation(BaseModel):
    id: int
    initials: str
    max_hours: float
    fair_hours: int
    fair_minutes: int
    percent: int


class TimedriverResponse(BaseModel):
    id: int
    date: str
    rentals: int
    budget_per_rental: float
    total_budget: float
    drivers_data: List[DriverAllocation]
    calculated_by: Optional[str] = None
    calculated_at: datetime

    class Config:
        from_attributes = True


# Upgrade sales
class UpgradeVehicleCreate(BaseModel):
    license_plate: str
    model: str = Field(min_length=1)
    reason: str = Field(min_length=1)
    is_van: bool = False
    date: Optional[str] = Field(default=None, pattern=DATE_PATTERN)
    created_by: Optional[str] = None

    @field_validator("license_plate")
    @classmethod
    def _plate(cls, v: str) -> str:
        v = normalize_plate(v)
        if not v:
            raise ValueError("license_plate is required")
        return v


class UpgradeVehicleUpdate(BaseModel):
    model: Optional[str] = None
    reason: Optional[str] = None
    is_van: Optional[bool] = None
    is_sold: Optional[bool] = None
    sold_by: Optional[str] = None


class UpgradeVehicleResponse(BaseModel):
    id: int
    license_plate: str
    model: str
    reason: str
    is_van: bool
    is_sold: bool
    sold_by: Optional[str] = None
    sold_at: Optional[datetime] = None
    date: str
    created_by: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


# Future planning
class FuturePlanningSave(BaseModel):
    date: str = Field(pattern=DATE_PATTERN)
    reservations_total: int = Field(ge=0)
    reservations_car: int = Field(ge=0)
    reservations_van: int = Field(ge=0)
    reservations_tas: int = Field(ge=0)
    deliveries_tomorrow: int = Field(default=0, ge=0)
    collections_open: int = Field(default=0, ge=0)
    car_day_min: Optional[int] = Field(default=None, ge=0)
    van_day_min: Optional[int] = Field(default=None, ge=0)
    saved_by: Optional[str] = None


class FuturePlanningResponse(BaseModel):
    id: int
    date: str
    reservations_total: int
    reservations_car: int
    reservations_van: int
    reservations_tas: int
    deliveries_tomorrow: int
    collections_open: int
    car_day_min: Optional[int] = None
    van_day_min: Optional[int] = None
    saved_by: Optional[str] = None
    saved_at: datetime

    class Config:
        from_attributes = True


# KPI metrics
KPI_KEYS = ("irpd", "ses")


class KpiMetricUpdate(BaseModel):
    value: float
    goal: float


class KpiMetricResponse(BaseModel):
    id: int
    key: str
    value: float
    goal: float
    updated_by: Optional[str] = None
    updated_at: datetime

    class Config:
        from_attributes = True
