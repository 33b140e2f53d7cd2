from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, field_validator, model_validator

from ..services.plates import build_plate, normalize_plate


def _naive_utc(v: Optional[datetime]) -> Optional[datetime]:
    # stored timestamps are naive UTC
    if v is not None and v.tzinfo is not None:
        return v.astimezone(timezone.utc).replace(tzinfo=None)
    return v


class VehicleCreate(BaseModel):
    license_plate: Optional[str] = None
    # Alternative to license_plate: the three plate fields as typed at the counter
    plate_city: Optional[str] = None
    plate_letters: Optional[str] = None
    plate_numbers: Optional[str] = None
    name: Optional[str] = None
    notes: Optional[str] = None
    is_ev: bool = False
    countdown_start: Optional[datetime] = None

    @field_validator("countdown_start")
    @classmethod
    def _countdown_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _naive_utc(v)

    @model_validator(mode="after")
    def _resolve_plate(self):
        if self.license_plate:
            self.license_plate = normalize_plate(self.license_plate)
        elif self.plate_city:
            self.license_plate = build_plate(
                self.plate_city, self.plate_letters or "", self.plate_numbers or "", self.is_ev
            )
        if not self.license_plate:
            raise ValueError("license_plate is required")
        return self


class VehicleUpdate(BaseModel):
    ready_for_collection: Optional[bool] = None
    name: Optional[str] = None
    notes: Optional[str] = None
    is_ev: Optional[bool] = None
    is_past: Optional[bool] = None
    countdown_start: Optional[datetime] = None

    @field_validator("countdown_start")
    @classmethod
    def _countdown_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _naive_utc(v)


class CommentCreate(BaseModel):
    content: str
    user_initials: Optional[str] = None

    @field_validator("content")
    @classmethod
    def _content_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Comment cannot be empty")
        return v


class CommentResponse(BaseModel):
    id: int
    vehicle_id: int
    content: str
    user_initials: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class VehicleResponse(BaseModel):
    id: int
    license_plate: str
    name: Optional[str] = None
    notes: Optional[str] = None
    is_ev: bool
    ready_for_collection: bool
    collection_todo_id: Optional[int] = None
    is_past: bool
    countdown_start: datetime
    created_at: datetime
    days_left: int
    is_expired: bool
    is_warning: bool
    has_comment_today: bool = False


class VehicleDetailResponse(VehicleResponse):
    comments: List[CommentResponse] = []
