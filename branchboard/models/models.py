from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Boolean,
    ForeignKey,
    Integer,
    Float,
    JSON,
    UniqueConstraint,
    Text,
    Index,
)
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def int_pk() -> Mapped[int]:
    return mapped_column(Integer, primary_key=True, autoincrement=True)


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = int_pk()
    initials: Mapped[str] = mapped_column(String(3), nullable=False)
    pin: Mapped[str] = mapped_column(String(4), unique=True, nullable=False, index=True)
    roles: Mapped[list] = mapped_column(JSON, default=list, nullable=False)  # subset of Counter|Driver
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    max_daily_hours: Mapped[Optional[float]] = mapped_column(Float)
    hourly_rate: Mapped[Optional[float]] = mapped_column(Float)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)


class Vehicle(Base):
    __tablename__ = "vehicles"

    id: Mapped[int] = int_pk()
    license_plate: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    name: Mapped[Optional[str]] = mapped_column(String(255))  # model or customer label
    notes: Mapped[Optional[str]] = mapped_column(Text)
    is_ev: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    ready_for_collection: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    collection_todo_id: Mapped[Optional[int]] = mapped_column(Integer)
    is_past: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    countdown_start: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    comments = relationship(
        "Comment",
        back_populates="vehicle",
        cascade="all, delete-orphan",
        order_by="Comment.created_at.desc()",
    )
    daily_comments = relationship("VehicleDailyComment", cascade="all, delete-orphan")


class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[int] = int_pk()
    vehicle_id: Mapped[int] = mapped_column(Integer, ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False, index=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    user_initials: Mapped[Optional[str]] = mapped_column(String(3))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    vehicle = relationship("Vehicle", back_populates="comments")


class VehicleDailyComment(Base):
    __tablename__ = "vehicle_daily_comments"
    __table_args__ = (UniqueConstraint("vehicle_id", "date", name="uq_vehicle_daily_comment"),)

    id: Mapped[int] = int_pk()
    vehicle_id: Mapped[int] = mapped_column(Integer, ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False)
    date: Mapped[str] = mapped_column(String(10), nullable=False, index=True)  # YYYY-MM-DD civil
    has_comment: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    comment_id: Mapped[Optional[int]] = mapped_column(Integer)


class Todo(Base):
    __tablename__ = "todos"

    id: Mapped[int] = int_pk()
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    assigned_to: Mapped[list] = mapped_column(JSON, default=list, nullable=False)  # role names
    completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    completed_by: Mapped[Optional[str]] = mapped_column(String(3))
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    vehicle_id: Mapped[Optional[int]] = mapped_column(Integer, index=True)
    is_system_generated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False)  # 0..3
    postponed_to_date: Mapped[Optional[str]] = mapped_column(String(10))
    postpone_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)


class QualityCheck(Base):
    __tablename__ = "quality_checks"

    id: Mapped[int] = int_pk()
    license_plate: Mapped[str] = mapped_column(String(32), nullable=False)
    is_ev: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    passed: Mapped[bool] = mapped_column(Boolean, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text)
    checked_by: Mapped[Optional[str]] = mapped_column(String(3))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, index=True)

    driver_tasks = relationship("DriverTask", back_populates="quality_check", cascade="all, delete-orphan")


class DriverTask(Base):
    __tablename__ = "driver_tasks"

    id: Mapped[int] = int_pk()
    quality_check_id: Mapped[int] = mapped_column(Integer, ForeignKey("quality_checks.id", ondelete="CASCADE"), nullable=False, index=True)
    license_plate: Mapped[str] = mapped_column(String(32), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    completed_by: Mapped[Optional[str]] = mapped_column(String(3))
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    quality_check = relationship("QualityCheck", back_populates="driver_tasks")


class FlowTask(Base):
    __tablename__ = "flow_tasks"

    id: Mapped[int] = int_pk()
    license_plate: Mapped[str] = mapped_column(String(32), nullable=False)
    is_ev: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    task_type: Mapped[str] = mapped_column(String(50), nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    completed_by: Mapped[Optional[str]] = mapped_column(String(3))
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    needs_retry: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    need_at: Mapped[Optional[str]] = mapped_column(String(5))  # HH:MM civil
    created_by: Mapped[Optional[str]] = mapped_column(String(3))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, index=True)

    __table_args__ = (Index("ix_flow_tasks_priority_id", "priority", "id"),)


class ModuleStatus(Base):
    __tablename__ = "module_status"
    __table_args__ = (UniqueConstraint("module_name", "date", name="uq_module_status_day"),)

    id: Mapped[int] = int_pk()
    module_name: Mapped[str] = mapped_column(String(50), nullable=False)
    date: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    is_done: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    done_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    done_by: Mapped[Optional[str]] = mapped_column(String(3))


class AppSetting(Base):
    __tablename__ = "app_settings"

    id: Mapped[int] = int_pk()
    key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)


class TimedriverCalculation(Base):
    __tablename__ = "timedriver_calculations"

    id: Mapped[int] = int_pk()
    date: Mapped[str] = mapped_column(String(10), unique=True, nullable=False)
    rentals: Mapped[int] = mapped_column(Integer, nullable=False)
    budget_per_rental: Mapped[float] = mapped_column(Float, nullable=False)
    total_budget: Mapped[float] = mapped_column(Float, nullable=False)  # minutes
    drivers_data: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    calculated_by: Mapped[Optional[str]] = mapped_column(String(3))
    calculated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)


class UpgradeVehicle(Base):
    __tablename__ = "upgrade_vehicles"

    id: Mapped[int] = int_pk()
    license_plate: Mapped[str] = mapped_column(String(32), nullable=False)
    model: Mapped[str] = mapped_column(String(255), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    is_van: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_sold: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sold_by: Mapped[Optional[str]] = mapped_column(String(3))
    sold_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    date: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    created_by: Mapped[Optional[str]] = mapped_column(String(3))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)


class FuturePlanning(Base):
    __tablename__ = "future_planning"

    id: Mapped[int] = int_pk()
    date: Mapped[str] = mapped_column(String(10), unique=True, nullable=False)
    reservations_total: Mapped[int] = mapped_column(Integer, nullable=False)
    reservations_car: Mapped[int] = mapped_column(Integer, nullable=False)
    reservations_van: Mapped[int] = mapped_column(Integer, nullable=False)
    reservations_tas: Mapped[int] = mapped_column(Integer, nullable=False)
    deliveries_tomorrow: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    collections_open: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    car_day_min: Mapped[Optional[int]] = mapped_column(Integer)
    van_day_min: Mapped[Optional[int]] = mapped_column(Integer)
    saved_by: Mapped[Optional[str]] = mapped_column(String(3))
    saved_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)


class KpiMetric(Base):
    __tablename__ = "kpi_metrics"

    id: Mapped[int] = int_pk()
    key: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)  # irpd|ses
    value: Mapped[float] = mapped_column(Float, nullable=False)
    goal: Mapped[float] = mapped_column(Float, nullable=False)
    updated_by: Mapped[Optional[str]] = mapped_column(String(3))
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
