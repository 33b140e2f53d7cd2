"""
Data access for every branchboard entity.

The repository only flushes; callers own the transaction and commit once the
whole state transition has been applied.
"""
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional, Set, Type, TypeVar

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models.models import (
    AppSetting,
    Comment,
    DriverTask,
    FlowTask,
    FuturePlanning,
    KpiMetric,
    ModuleStatus,
    QualityCheck,
    TimedriverCalculation,
    Todo,
    UpgradeVehicle,
    User,
    Vehicle,
    VehicleDailyComment,
)
from .clock import CivilClock
from .errors import NotFoundError


T = TypeVar("T")


class Repository:
    def __init__(self, db: Session, clock: CivilClock) -> None:
        self.db = db
        self.clock = clock

    # ---------- transaction ----------
    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    # ---------- helpers ----------
    def _get(self, model: Type[T], row_id: int) -> Optional[T]:
        return self.db.query(model).filter(model.id == row_id).first()

    def _require(self, model: Type[T], row_id: int, resource: str) -> T:
        row = self._get(model, row_id)
        if row is None:
            raise NotFoundError(resource, row_id)
        return row

    def _add(self, row: T) -> T:
        self.db.add(row)
        self.db.flush()
        return row

    def _apply(self, row: T, fields: Dict[str, Any]) -> T:
        for key, value in fields.items():
            setattr(row, key, value)
        self.db.flush()
        return row

    # ---------- vehicles ----------
    def list_vehicles(self, filter: str = "all", search: Optional[str] = None, countdown_days: int = 7) -> List[Vehicle]:
        query = self.db.query(Vehicle)
        if search:
            like = f"%{search}%"
            query = query.filter(Vehicle.license_plate.ilike(like) | Vehicle.name.ilike(like))
        rows = query.order_by(Vehicle.countdown_start.desc(), Vehicle.id.desc()).all()
        if filter == "expired":
            now = self.clock.utcnow()
            rows = [v for v in rows if not v.is_past and now > v.countdown_start + timedelta(days=countdown_days)]
        return rows

    def active_vehicles(self) -> List[Vehicle]:
        return (
            self.db.query(Vehicle)
            .filter(Vehicle.is_past.is_(False))
            .order_by(Vehicle.countdown_start.asc(), Vehicle.id.asc())
            .all()
        )

    def get_vehicle(self, vehicle_id: int) -> Optional[Vehicle]:
        return self._get(Vehicle, vehicle_id)

    def create_vehicle(self, **fields: Any) -> Vehicle:
        now = self.clock.utcnow()
        if fields.get("countdown_start") is None:
            fields["countdown_start"] = now
        return self._add(Vehicle(created_at=now, **fields))

    def update_vehicle(self, vehicle_id: int, **fields: Any) -> Vehicle:
        return self._apply(self._require(Vehicle, vehicle_id, "Vehicle"), fields)

    def delete_vehicle(self, vehicle_id: int) -> None:
        vehicle = self._require(Vehicle, vehicle_id, "Vehicle")
        self.db.delete(vehicle)
        self.db.flush()

    # ---------- comments ----------
    def create_comment(self, vehicle_id: int, content: str, user_initials: Optional[str] = None) -> Comment:
        return self._add(
            Comment(vehicle_id=vehicle_id, content=content, user_initials=user_initials, created_at=self.clock.utcnow())
        )

    def list_comments(self, vehicle_id: int) -> List[Comment]:
        return (
            self.db.query(Comment)
            .filter(Comment.vehicle_id == vehicle_id)
            .order_by(Comment.created_at.desc(), Comment.id.desc())
            .all()
        )

    # ---------- vehicle daily comment markers ----------
    def get_vehicle_daily_comment(self, vehicle_id: int, date: str) -> Optional[VehicleDailyComment]:
        return (
            self.db.query(VehicleDailyComment)
            .filter(VehicleDailyComment.vehicle_id == vehicle_id, VehicleDailyComment.date == date)
            .first()
        )

    def set_vehicle_daily_comment(self, vehicle_id: int, date: str, comment_id: int) -> VehicleDailyComment:
        existing = self.get_vehicle_daily_comment(vehicle_id, date)
        if existing:
            return self._apply(existing, {"has_comment": True, "comment_id": comment_id})
        return self._add(VehicleDailyComment(vehicle_id=vehicle_id, date=date, has_comment=True, comment_id=comment_id))

    def vehicle_ids_with_comment(self, date: str) -> Set[int]:
        rows = (
            self.db.query(VehicleDailyComment.vehicle_id)
            .filter(VehicleDailyComment.date == date, VehicleDailyComment.has_comment.is_(True))
            .all()
        )
        return {r.vehicle_id for r in rows}

    def vehicles_without_daily_comment(self, date: str) -> List[Vehicle]:
        commented = self.vehicle_ids_with_comment(date)
        return [v for v in self.active_vehicles() if v.id not in commented]

    # ---------- users ----------
    def list_users(self) -> List[User]:
        return self.db.query(User).order_by(User.initials.asc(), User.id.asc()).all()

    def get_user(self, user_id: int) -> Optional[User]:
        return self._get(User, user_id)

    def get_user_by_pin(self, pin: str) -> Optional[User]:
        return self.db.query(User).filter(User.pin == pin).first()

    def get_admin(self) -> Optional[User]:
        return self.db.query(User).filter(User.is_admin.is_(True)).order_by(User.id.asc()).first()

    def create_user(self, **fields: Any) -> User:
        return self._add(User(created_at=self.clock.utcnow(), **fields))

    def update_user(self, user_id: int, **fields: Any) -> User:
        return self._apply(self._require(User, user_id, "User"), fields)

    def delete_user(self, user_id: int) -> None:
        self.db.delete(self._require(User, user_id, "User"))
        self.db.flush()

    def is_pin_unique(self, pin: str, exclude_id: Optional[int] = None) -> bool:
        query = self.db.query(User).filter(User.pin == pin)
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        return query.first() is None

    def list_drivers(self) -> List[User]:
        return [u for u in self.list_users() if "Driver" in (u.roles or []) and u.max_daily_hours]

    # ---------- todos ----------
    def list_todos(self) -> List[Todo]:
        return self.db.query(Todo).order_by(Todo.priority.desc(), Todo.id.asc()).all()

    def get_todo(self, todo_id: int) -> Optional[Todo]:
        return self._get(Todo, todo_id)

    def create_todo(self, **fields: Any) -> Todo:
        return self._add(Todo(created_at=self.clock.utcnow(), **fields))

    def update_todo(self, todo_id: int, **fields: Any) -> Todo:
        return self._apply(self._require(Todo, todo_id, "Todo"), fields)

    def delete_todo(self, todo_id: int) -> None:
        self.db.delete(self._require(Todo, todo_id, "Todo"))
        self.db.flush()

    def system_todos_for_vehicle(self, vehicle_id: int) -> List[Todo]:
        return (
            self.db.query(Todo)
            .filter(Todo.vehicle_id == vehicle_id, Todo.is_system_generated.is_(True))
            .all()
        )

    def reset_recurring_todos(self) -> int:
        rows = self.db.query(Todo).filter(Todo.is_recurring.is_(True), Todo.completed.is_(True)).all()
        for todo in rows:
            todo.completed = False
            todo.completed_at = None
            todo.completed_by = None
        self.db.flush()
        return len(rows)

    # ---------- quality checks ----------
    def list_quality_checks(self) -> List[QualityCheck]:
        return self.db.query(QualityCheck).order_by(QualityCheck.created_at.desc(), QualityCheck.id.desc()).all()

    def get_quality_check(self, check_id: int) -> Optional[QualityCheck]:
        return self._get(QualityCheck, check_id)

    def create_quality_check(self, **fields: Any) -> QualityCheck:
        return self._add(QualityCheck(created_at=self.clock.utcnow(), **fields))

    def delete_quality_check(self, check_id: int) -> None:
        # driver tasks go with it (relationship cascade)
        self.db.delete(self._require(QualityCheck, check_id, "Quality check"))
        self.db.flush()

    def quality_checks_for_date(self, date: str) -> List[QualityCheck]:
        start, end = self.clock.day_bounds_utc(date)
        return (
            self.db.query(QualityCheck)
            .filter(QualityCheck.created_at >= start, QualityCheck.created_at < end)
            .order_by(QualityCheck.created_at.desc(), QualityCheck.id.desc())
            .all()
        )

    # ---------- driver tasks ----------
    def list_driver_tasks(self) -> List[DriverTask]:
        return self.db.query(DriverTask).order_by(DriverTask.created_at.desc(), DriverTask.id.desc()).all()

    def get_driver_task(self, task_id: int) -> Optional[DriverTask]:
        return self._get(DriverTask, task_id)

    def create_driver_task(self, **fields: Any) -> DriverTask:
        return self._add(DriverTask(created_at=self.clock.utcnow(), **fields))

    def update_driver_task(self, task_id: int, **fields: Any) -> DriverTask:
        return self._apply(self._require(DriverTask, task_id, "Driver task"), fields)

    def incomplete_driver_tasks(self) -> List[DriverTask]:
        return self.db.query(DriverTask).filter(DriverTask.completed.is_(False)).all()

    def driver_tasks_for_checks(self, check_ids: Iterable[int]) -> Dict[int, DriverTask]:
        ids = list(check_ids)
        if not ids:
            return {}
        rows = self.db.query(DriverTask).filter(DriverTask.quality_check_id.in_(ids)).all()
        return {t.quality_check_id: t for t in rows}

    # ---------- flow tasks ----------
    def list_flow_tasks(self) -> List[FlowTask]:
        return self.db.query(FlowTask).order_by(FlowTask.priority.asc(), FlowTask.id.asc()).all()

    def get_flow_task(self, task_id: int) -> Optional[FlowTask]:
        return self._get(FlowTask, task_id)

    def max_flow_priority(self) -> int:
        return self.db.query(func.coalesce(func.max(FlowTask.priority), 0)).scalar() or 0

    def create_flow_task(self, **fields: Any) -> FlowTask:
        return self._add(FlowTask(created_at=self.clock.utcnow(), **fields))

    def update_flow_task(self, task_id: int, **fields: Any) -> FlowTask:
        return self._apply(self._require(FlowTask, task_id, "Flow task"), fields)

    def delete_flow_task(self, task_id: int) -> None:
        self.db.delete(self._require(FlowTask, task_id, "Flow task"))
        self.db.flush()

    def flow_tasks_by_ids(self, task_ids: Iterable[int]) -> Dict[int, FlowTask]:
        ids = list(task_ids)
        if not ids:
            return {}
        return {t.id: t for t in self.db.query(FlowTask).filter(FlowTask.id.in_(ids)).all()}

    def set_flow_priorities(self, ordered_ids: List[int]) -> None:
        rows = self.flow_tasks_by_ids(ordered_ids)
        for index, task_id in enumerate(ordered_ids):
            rows[task_id].priority = index + 1
        self.db.flush()

    def cleanup_old_completed_flow_tasks(self, today: str) -> int:
        """Delete completed flow tasks created before the civil day `today`."""
        start, _ = self.clock.day_bounds_utc(today)
        rows = (
            self.db.query(FlowTask)
            .filter(FlowTask.completed.is_(True), FlowTask.created_at < start)
            .all()
        )
        for row in rows:
            self.db.delete(row)
        self.db.flush()
        return len(rows)

    # ---------- module status ----------
    def module_statuses(self, date: str) -> List[ModuleStatus]:
        return (
            self.db.query(ModuleStatus)
            .filter(ModuleStatus.date == date)
            .order_by(ModuleStatus.module_name.asc())
            .all()
        )

    def get_module_status(self, module_name: str, date: str) -> Optional[ModuleStatus]:
        return (
            self.db.query(ModuleStatus)
            .filter(ModuleStatus.module_name == module_name, ModuleStatus.date == date)
            .first()
        )

    def upsert_module_status(self, module_name: str, date: str, **fields: Any) -> ModuleStatus:
        existing = self.get_module_status(module_name, date)
        if existing:
            return self._apply(existing, fields)
        return self._add(ModuleStatus(module_name=module_name, date=date, **fields))

    # ---------- settings ----------
    def get_setting(self, key: str) -> Optional[AppSetting]:
        return self.db.query(AppSetting).filter(AppSetting.key == key).first()

    def set_setting(self, key: str, value: str) -> AppSetting:
        existing = self.get_setting(key)
        now = self.clock.utcnow()
        if existing:
            return self._apply(existing, {"value": value, "updated_at": now})
        return self._add(AppSetting(key=key, value=value, updated_at=now))

    # ---------- timedriver calculations ----------
    def get_timedriver_calculation(self, date: str) -> Optional[TimedriverCalculation]:
        return self.db.query(TimedriverCalculation).filter(TimedriverCalculation.date == date).first()

    def save_timedriver_calculation(self, date: str, **fields: Any) -> TimedriverCalculation:
        fields["calculated_at"] = self.clock.utcnow()
        existing = self.get_timedriver_calculation(date)
        if existing:
            return self._apply(existing, fields)
        return self._add(TimedriverCalculation(date=date, **fields))

    def delete_timedriver_calculation(self, date: str) -> bool:
        existing = self.get_timedriver_calculation(date)
        if existing is None:
            return False
        self.db.delete(existing)
        self.db.flush()
        return True

    # ---------- upgrade vehicles ----------
    def list_upgrade_vehicles(self) -> List[UpgradeVehicle]:
        return self.db.query(UpgradeVehicle).order_by(UpgradeVehicle.created_at.desc(), UpgradeVehicle.id.desc()).all()

    def get_upgrade_vehicle(self, vehicle_id: int) -> Optional[UpgradeVehicle]:
        return self._get(UpgradeVehicle, vehicle_id)

    def upgrade_vehicles_for_date(self, date: str) -> List[UpgradeVehicle]:
        return (
            self.db.query(UpgradeVehicle)
            .filter(UpgradeVehicle.date == date)
            .order_by(UpgradeVehicle.created_at.desc(), UpgradeVehicle.id.desc())
            .all()
        )

    def pending_upgrade_vehicles(self, date: str) -> List[UpgradeVehicle]:
        return [v for v in self.upgrade_vehicles_for_date(date) if not v.is_sold]

    def create_upgrade_vehicle(self, **fields: Any) -> UpgradeVehicle:
        return self._add(UpgradeVehicle(created_at=self.clock.utcnow(), **fields))

    def update_upgrade_vehicle(self, vehicle_id: int, **fields: Any) -> UpgradeVehicle:
        return self._apply(self._require(UpgradeVehicle, vehicle_id, "Upgrade vehicle"), fields)

    def delete_upgrade_vehicle(self, vehicle_id: int) -> None:
        self.db.delete(self._require(UpgradeVehicle, vehicle_id, "Upgrade vehicle"))
        self.db.flush()

    # ---------- future planning ----------
    def get_future_planning(self, date: str) -> Optional[FuturePlanning]:
        return self.db.query(FuturePlanning).filter(FuturePlanning.date == date).first()

    def save_future_planning(self, date: str, **fields: Any) -> FuturePlanning:
        fields["saved_at"] = self.clock.utcnow()
        existing = self.get_future_planning(date)
        if existing:
            return self._apply(existing, fields)
        return self._add(FuturePlanning(date=date, **fields))

    def delete_future_planning(self, date: str) -> bool:
        existing = self.get_future_planning(date)
        if existing is None:
            return False
        self.db.delete(existing)
        self.db.flush()
        return True

    # ---------- KPI metrics ----------
    def list_kpi_metrics(self) -> List[KpiMetric]:
        return self.db.query(KpiMetric).order_by(KpiMetric.key.asc()).all()

    def get_kpi_metric(self, key: str) -> Optional[KpiMetric]:
        return self.db.query(KpiMetric).filter(KpiMetric.key == key).first()

    def upsert_kpi_metric(self, key: str, **fields: Any) -> KpiMetric:
        fields["updated_at"] = self.clock.utcnow()
        existing = self.get_kpi_metric(key)
        if existing:
            return self._apply(existing, fields)
        return self._add(KpiMetric(key=key, **fields))
