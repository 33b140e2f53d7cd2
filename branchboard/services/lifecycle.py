"""
Cross-entity state transitions.

Each public method validates its input, applies every side effect inside one
transaction, commits, and then tells connected clients which resource
category changed. A failure anywhere rolls the whole transition back.
"""
import math
from contextlib import contextmanager
from datetime import timedelta
from typing import Any, Callable, Dict, Iterator, List, Optional

import structlog

from ..models.models import (
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
    Vehicle,
)
from ..schemas.bodyshop import CommentCreate, VehicleCreate, VehicleUpdate
from ..schemas.daily import (
    KPI_KEYS,
    FuturePlanningSave,
    KpiMetricUpdate,
    ModuleStatusUpdate,
    SettingValue,
    TimedriverCalculate,
    UpgradeVehicleCreate,
    UpgradeVehicleUpdate,
)
from ..schemas.tasks import (
    DriverTaskUpdate,
    FlowTaskCreate,
    FlowTaskReorder,
    FlowTaskUpdate,
    QualityCheckCreate,
    TodoCreate,
    TodoUpdate,
)
from . import labor_budget
from .clock import parse_civil_date
from .errors import NotFoundError, ValidationFailed, parse_input
from .module_ledger import ModuleStatusLedger
from .repository import Repository


log = structlog.get_logger(__name__)

Notifier = Callable[[str], None]

BUDGET_SETTING_KEY = "budgetPerRental"
COLLECTION_TODO_PREFIX = "Bodyshop Collection: "


class TaskLifecycle:
    def __init__(
        self,
        repo: Repository,
        ledger: ModuleStatusLedger,
        notify: Notifier,
        default_budget_per_rental: float = 16.39,
        countdown_days: int = 7,
        warning_days: int = 3,
    ) -> None:
        self.repo = repo
        self.ledger = ledger
        self.clock = repo.clock
        self.notify = notify
        self.default_budget_per_rental = default_budget_per_rental
        self.countdown_days = countdown_days
        self.warning_days = warning_days

    @contextmanager
    def _transaction(self, *categories: str) -> Iterator[List[str]]:
        touched = list(categories)
        try:
            yield touched
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise
        for category in touched:
            self.notify(category)

    def _require(self, row: Any, resource: str, key: Any) -> Any:
        if row is None:
            raise NotFoundError(resource, key)
        return row

    def _reject_nulls(self, patch: Dict[str, Any], *keys: str) -> None:
        for key in keys:
            if key in patch and patch[key] is None:
                raise ValidationFailed(f"{key} cannot be null", field=key)

    def check_date(self, value: str, field: str = "date") -> str:
        try:
            parse_civil_date(value)
        except ValueError as exc:
            raise ValidationFailed("Date must be YYYY-MM-DD", field=field) from exc
        return value

    # ---------- vehicles ----------
    def vehicle_countdown(self, vehicle: Vehicle) -> Dict[str, Any]:
        ends_at = vehicle.countdown_start + timedelta(days=self.countdown_days)
        remaining = (ends_at - self.clock.utcnow()).total_seconds()
        days_left = max(0, math.ceil(remaining / 86400))
        return {
            "days_left": days_left,
            "is_expired": days_left <= 0,
            "is_warning": 0 < days_left <= self.warning_days,
        }

    def create_vehicle(self, payload: Any) -> Vehicle:
        data = parse_input(VehicleCreate, payload)
        with self._transaction("vehicles"):
            vehicle = self.repo.create_vehicle(
                license_plate=data.license_plate,
                name=data.name,
                notes=data.notes,
                is_ev=data.is_ev,
                countdown_start=data.countdown_start,
            )
        log.info("vehicle_created", vehicle_id=vehicle.id, plate=vehicle.license_plate)
        return vehicle

    def apply_vehicle_update(self, vehicle_id: int, payload: Any) -> Vehicle:
        """Patch a vehicle; toggling collection readiness creates or removes its collection todo."""
        data = parse_input(VehicleUpdate, payload)
        patch = data.model_dump(exclude_unset=True)
        self._reject_nulls(patch, "ready_for_collection", "is_ev", "is_past", "countdown_start")
        vehicle = self._require(self.repo.get_vehicle(vehicle_id), "Vehicle", vehicle_id)
        with self._transaction("vehicles") as categories:
            ready = patch.pop("ready_for_collection", None)
            if ready is not None and ready != vehicle.ready_for_collection:
                categories.append("todos")
                if ready:
                    todo = self.repo.create_todo(
                        title=f"{COLLECTION_TODO_PREFIX}{vehicle.license_plate}",
                        assigned_to=["Counter"],
                        vehicle_id=vehicle.id,
                        is_system_generated=True,
                    )
                    patch["collection_todo_id"] = todo.id
                else:
                    if vehicle.collection_todo_id is not None and self.repo.get_todo(vehicle.collection_todo_id):
                        self.repo.delete_todo(vehicle.collection_todo_id)
                    patch["collection_todo_id"] = None
                patch["ready_for_collection"] = ready
            self.repo.update_vehicle(vehicle_id, **patch)
        return vehicle

    def delete_vehicle(self, vehicle_id: int) -> None:
        self._require(self.repo.get_vehicle(vehicle_id), "Vehicle", vehicle_id)
        with self._transaction("vehicles", "todos"):
            for todo in self.repo.system_todos_for_vehicle(vehicle_id):
                self.repo.delete_todo(todo.id)
            self.repo.delete_vehicle(vehicle_id)
        log.info("vehicle_deleted", vehicle_id=vehicle_id)

    def add_vehicle_comment(self, vehicle_id: int, payload: Any, actor: Optional[str] = None) -> Comment:
        data = parse_input(CommentCreate, payload)
        self._require(self.repo.get_vehicle(vehicle_id), "Vehicle", vehicle_id)
        with self._transaction("vehicles", "dashboard"):
            comment = self.repo.create_comment(vehicle_id, data.content, data.user_initials or actor)
            self.repo.set_vehicle_daily_comment(vehicle_id, self.clock.today(), comment.id)
        return comment

    # ---------- todos ----------
    def create_todo(self, payload: Any) -> Todo:
        data = parse_input(TodoCreate, payload)
        with self._transaction("todos"):
            todo = self.repo.create_todo(
                title=data.title.strip(),
                assigned_to=list(data.assigned_to),
                is_recurring=data.is_recurring,
                priority=data.priority,
                is_system_generated=False,
            )
        return todo

    def apply_todo_update(self, todo_id: int, payload: Any, actor: Optional[str] = None) -> Todo:
        data = parse_input(TodoUpdate, payload)
        patch = data.model_dump(exclude_unset=True)
        self._reject_nulls(patch, "title", "completed", "priority", "assigned_to")
        todo = self._require(self.repo.get_todo(todo_id), "Todo", todo_id)
        with self._transaction("todos") as categories:
            completed = patch.get("completed")
            if completed is True and not todo.completed:
                patch["completed_at"] = self.clock.utcnow()
                patch.setdefault("completed_by", actor)
                if todo.is_system_generated and todo.vehicle_id is not None:
                    vehicle = self.repo.get_vehicle(todo.vehicle_id)
                    if vehicle is not None:
                        self.repo.update_vehicle(vehicle.id, is_past=True)
                        categories.append("vehicles")
            elif completed is False:
                patch["completed_at"] = None
                patch["completed_by"] = None
            self.repo.update_todo(todo_id, **patch)
        return todo

    def postpone_todo(self, todo_id: int) -> Todo:
        todo = self._require(self.repo.get_todo(todo_id), "Todo", todo_id)
        if not todo.is_system_generated:
            raise ValidationFailed("Only system-generated todos can be postponed", field="is_system_generated")
        if todo.postpone_count >= 1:
            raise ValidationFailed("Todo has already been postponed", field="postpone_count")
        if todo.completed:
            raise ValidationFailed("Completed todos cannot be postponed", field="completed")
        with self._transaction("todos"):
            self.repo.update_todo(
                todo_id,
                postponed_to_date=self.clock.tomorrow(),
                postpone_count=todo.postpone_count + 1,
            )
        return todo

    def delete_todo(self, todo_id: int) -> None:
        todo = self._require(self.repo.get_todo(todo_id), "Todo", todo_id)
        with self._transaction("todos") as categories:
            if todo.vehicle_id is not None:
                vehicle = self.repo.get_vehicle(todo.vehicle_id)
                if vehicle is not None and vehicle.collection_todo_id == todo_id:
                    self.repo.update_vehicle(vehicle.id, collection_todo_id=None, ready_for_collection=False)
                    categories.append("vehicles")
            self.repo.delete_todo(todo_id)

    # ---------- quality checks / driver tasks ----------
    def create_quality_check(self, payload: Any) -> QualityCheck:
        """Record a check; a failed one spawns exactly one driver task."""
        data = parse_input(QualityCheckCreate, payload)
        with self._transaction("quality-checks") as categories:
            check = self.repo.create_quality_check(
                license_plate=data.license_plate,
                is_ev=data.is_ev,
                passed=data.passed,
                comment=data.comment,
                checked_by=data.checked_by,
            )
            if not data.passed:
                self.repo.create_driver_task(
                    quality_check_id=check.id,
                    license_plate=check.license_plate,
                    description=(data.comment or "").strip() or f"Quality check failed for {check.license_plate}",
                )
                categories.append("driver-tasks")
        return check

    def delete_quality_check(self, check_id: int) -> None:
        self._require(self.repo.get_quality_check(check_id), "Quality check", check_id)
        with self._transaction("quality-checks", "driver-tasks"):
            self.repo.delete_quality_check(check_id)

    def update_driver_task(self, task_id: int, payload: Any, actor: Optional[str] = None) -> DriverTask:
        data = parse_input(DriverTaskUpdate, payload)
        patch = data.model_dump(exclude_unset=True)
        self._reject_nulls(patch, "completed")
        task = self._require(self.repo.get_driver_task(task_id), "Driver task", task_id)
        with self._transaction("driver-tasks"):
            if patch.get("completed") is True and not task.completed:
                patch["completed_at"] = self.clock.utcnow()
                patch.setdefault("completed_by", actor)
            elif patch.get("completed") is False:
                patch["completed_at"] = None
                patch["completed_by"] = None
            self.repo.update_driver_task(task_id, **patch)
        return task

    # ---------- flow tasks ----------
    def create_flow_task(self, payload: Any, actor: Optional[str] = None) -> FlowTask:
        data = parse_input(FlowTaskCreate, payload)
        with self._transaction("flow-tasks"):
            task = self.repo.create_flow_task(
                license_plate=data.license_plate,
                is_ev=data.is_ev,
                task_type=data.task_type,
                need_at=data.need_at,
                created_by=data.created_by or actor,
                priority=self.repo.max_flow_priority() + 1,
            )
        return task

    def update_flow_task(self, task_id: int, payload: Any, actor: Optional[str] = None) -> FlowTask:
        data = parse_input(FlowTaskUpdate, payload)
        patch = data.model_dump(exclude_unset=True)
        self._reject_nulls(patch, "license_plate", "is_ev", "task_type", "completed", "needs_retry")
        if patch.get("completed") is True and patch.get("needs_retry") is True:
            raise ValidationFailed("A task cannot be completed and flagged for retry at once", field="needs_retry")
        task = self._require(self.repo.get_flow_task(task_id), "Flow task", task_id)
        with self._transaction("flow-tasks"):
            if patch.get("completed") is True:
                patch["needs_retry"] = False
                if not task.completed:
                    patch["completed_at"] = self.clock.utcnow()
                    patch.setdefault("completed_by", actor)
            elif patch.get("needs_retry") is True or patch.get("completed") is False:
                patch["completed"] = False
                patch["completed_at"] = None
                patch["completed_by"] = None
            self.repo.update_flow_task(task_id, **patch)
        return task

    def delete_flow_task(self, task_id: int) -> None:
        self._require(self.repo.get_flow_task(task_id), "Flow task", task_id)
        with self._transaction("flow-tasks"):
            self.repo.delete_flow_task(task_id)

    def reorder_flow_tasks(self, payload: Any) -> List[FlowTask]:
        data = parse_input(FlowTaskReorder, payload)
        ids = data.task_ids
        if len(set(ids)) != len(ids):
            raise ValidationFailed("Duplicate task ids in reorder", field="task_ids")
        found = self.repo.flow_tasks_by_ids(ids)
        missing = [i for i in ids if i not in found]
        if missing:
            raise NotFoundError("Flow task", missing[0])
        with self._transaction("flow-tasks"):
            self.repo.set_flow_priorities(ids)
        return self.repo.list_flow_tasks()

    # ---------- module status / settings ----------
    def set_module_status(self, payload: Any, actor: Optional[str] = None) -> ModuleStatus:
        data = parse_input(ModuleStatusUpdate, payload)
        self.check_date(data.date)
        with self._transaction("module-status", "dashboard"):
            row = self.ledger.set_status(data.module_name, data.date, data.is_done, data.done_by or actor)
        return row

    def set_setting(self, key: str, payload: Any):
        data = parse_input(SettingValue, payload)
        if key == BUDGET_SETTING_KEY:
            try:
                if float(data.value) <= 0:
                    raise ValueError(data.value)
            except ValueError as exc:
                raise ValidationFailed("Budget per rental must be a positive number", field="value") from exc
        with self._transaction("settings"):
            row = self.repo.set_setting(key, data.value)
        return row

    def budget_per_rental(self) -> float:
        row = self.repo.get_setting(BUDGET_SETTING_KEY)
        if row is None:
            return self.default_budget_per_rental
        return float(row.value)

    # ---------- timedriver ----------
    def calculate_timedriver(self, payload: Any, actor: Optional[str] = None) -> TimedriverCalculation:
        data = parse_input(TimedriverCalculate, payload)
        date = self.check_date(data.date) if data.date else self.clock.today()
        drivers = []
        for driver_id in data.driver_ids:
            user = self.repo.get_user(driver_id)
            if user is None:
                raise NotFoundError("Driver", driver_id)
            drivers.append(user)
        budget_per_rental = data.budget_per_rental or self.budget_per_rental()
        allocations = labor_budget.allocate(data.rentals, budget_per_rental, drivers)
        with self._transaction("timedriver-calculation", "module-status", "dashboard"):
            calc = self.repo.save_timedriver_calculation(
                date,
                rentals=data.rentals,
                budget_per_rental=budget_per_rental,
                total_budget=labor_budget.total_budget_minutes(data.rentals, budget_per_rental),
                drivers_data=allocations,
                calculated_by=actor,
            )
            self.ledger.set_status("timedriver", date, True, actor)
        log.info("timedriver_calculated", date=date, rentals=data.rentals, drivers=len(drivers))
        return calc

    def delete_timedriver_calculation(self, date: str) -> None:
        self.check_date(date)
        with self._transaction("timedriver-calculation", "module-status", "dashboard"):
            if not self.repo.delete_timedriver_calculation(date):
                raise NotFoundError("Timedriver calculation", date)
            self.ledger.set_status("timedriver", date, False)

    # ---------- upgrade vehicles ----------
    def create_upgrade_vehicle(self, payload: Any, actor: Optional[str] = None) -> UpgradeVehicle:
        data = parse_input(UpgradeVehicleCreate, payload)
        date = self.check_date(data.date) if data.date else self.clock.today()
        with self._transaction("upgrade-vehicles", "dashboard"):
            row = self.repo.create_upgrade_vehicle(
                license_plate=data.license_plate,
                model=data.model.strip(),
                reason=data.reason.strip(),
                is_van=data.is_van,
                date=date,
                created_by=data.created_by or actor,
            )
        return row

    def update_upgrade_vehicle(self, vehicle_id: int, payload: Any, actor: Optional[str] = None) -> UpgradeVehicle:
        data = parse_input(UpgradeVehicleUpdate, payload)
        patch = data.model_dump(exclude_unset=True)
        self._reject_nulls(patch, "model", "reason", "is_van", "is_sold")
        row = self._require(self.repo.get_upgrade_vehicle(vehicle_id), "Upgrade vehicle", vehicle_id)
        with self._transaction("upgrade-vehicles", "dashboard"):
            if patch.get("is_sold") is True and not row.is_sold:
                patch["sold_at"] = self.clock.utcnow()
                patch.setdefault("sold_by", actor)
            elif patch.get("is_sold") is False:
                patch["sold_at"] = None
                patch["sold_by"] = None
            self.repo.update_upgrade_vehicle(vehicle_id, **patch)
        return row

    def delete_upgrade_vehicle(self, vehicle_id: int) -> None:
        self._require(self.repo.get_upgrade_vehicle(vehicle_id), "Upgrade vehicle", vehicle_id)
        with self._transaction("upgrade-vehicles", "dashboard"):
            self.repo.delete_upgrade_vehicle(vehicle_id)

    # ---------- future planning ----------
    def save_future_planning(self, payload: Any, actor: Optional[str] = None) -> FuturePlanning:
        data = parse_input(FuturePlanningSave, payload)
        self.check_date(data.date)
        if data.reservations_car + data.reservations_van + data.reservations_tas != data.reservations_total:
            raise ValidationFailed(
                "Car, van and TAS reservations must add up to the total",
                field="reservations_total",
            )
        fields = data.model_dump(exclude={"date"})
        fields["saved_by"] = data.saved_by or actor
        with self._transaction("future-planning", "module-status", "dashboard"):
            row = self.repo.save_future_planning(data.date, **fields)
            self.ledger.set_status("future", data.date, True, fields["saved_by"])
        return row

    def delete_future_planning(self, date: str) -> None:
        self.check_date(date)
        with self._transaction("future-planning", "module-status", "dashboard"):
            if not self.repo.delete_future_planning(date):
                raise NotFoundError("Future planning", date)
            self.ledger.set_status("future", date, False)

    # ---------- KPI ----------
    def upsert_kpi_metric(self, key: str, payload: Any, actor: Optional[str] = None) -> KpiMetric:
        if key not in KPI_KEYS:
            raise ValidationFailed(f"Unknown KPI '{key}'", field="key")
        data = parse_input(KpiMetricUpdate, payload)
        with self._transaction("kpi-metrics"):
            row = self.repo.upsert_kpi_metric(key, value=data.value, goal=data.goal, updated_by=actor)
        return row

    # ---------- day rollover ----------
    def midnight_reset(self) -> Dict[str, int]:
        """Start a fresh civil day: drop yesterday's finished flow tasks, reopen recurring todos."""
        with self._transaction("flow-tasks", "todos", "dashboard"):
            purged = self.repo.cleanup_old_completed_flow_tasks(self.clock.today())
            reopened = self.repo.reset_recurring_todos()
        log.info("midnight_reset", purged_flow_tasks=purged, reopened_todos=reopened)
        return {"purged_flow_tasks": purged, "reopened_todos": reopened}
