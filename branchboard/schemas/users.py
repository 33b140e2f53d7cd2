from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class UserRole(str, Enum):
    counter = "Counter"
    driver = "Driver"


PIN_PATTERN = r"^\d{4}$"


def _clean_initials(v: str) -> str:
    v = v.strip().upper()
    if not 1 <= len(v) <= 3:
        raise ValueError("Initials must be 1-3 characters")
    return v


class UserCreate(BaseModel):
    initials: str
    pin: str = Field(pattern=PIN_PATTERN)
    roles: List[UserRole] = []
    is_admin: bool = False
    max_daily_hours: Optional[float] = Field(default=None, gt=0, le=24)
    hourly_rate: Optional[float] = Field(default=None, ge=0)

    @field_validator("initials")
    @classmethod
    def _initials(cls, v: str) -> str:
        return _clean_initials(v)

    class Config:
        use_enum_values = True


class UserUpdate(BaseModel):
    initials: Optional[str] = None
    pin: Optional[str] = Field(default=None, pattern=PIN_PATTERN)
    roles: Optional[List[UserRole]] = None
    is_admin: Optional[bool] = None
    max_daily_hours: Optional[float] = Field(default=None, gt=0, le=24)
    hourly_rate: Optional[float] = Field(default=None, ge=0)

    @field_validator("initials")
    @classmethod
    def _initials(cls, v: Optional[str]) -> Optional[str]:
        return _clean_initials(v) if v is not None else v

    class Config:
        use_enum_values = True


class PinCheck(BaseModel):
    pin: str = Field(pattern=PIN_PATTERN)
    exclude_id: Optional[int] = None


class LoginRequest(BaseModel):
    pin: str = Field(pattern=PIN_PATTERN)


class UserResponse(BaseModel):
    id: int
    initials: str
    roles: List[str]
    is_admin: bool
    max_daily_hours: Optional[float] = None
    hourly_rate: Optional[float] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AdminUserResponse(UserResponse):
    pin: str


class DriverResponse(BaseModel):
    id: int
    initials: str
    max_daily_hours: float
    hourly_rate: Optional[float] = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
