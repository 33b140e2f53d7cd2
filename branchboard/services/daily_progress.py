"""
Daily progress aggregation.

Recomputes every module's status for a civil date straight from the
repository and folds the per-module completion ratios into one score.
Each configured module carries weight 1/N; modules that have nothing to do
for the day count as fully done, and the denominator never shrinks.
"""
import math
from typing import Dict, List, Optional, Sequence

import structlog

from ..schemas.daily import FuturePlanningResponse, UpgradeVehicleResponse
from ..schemas.dashboard import (
    BodyshopStatus,
    DailyStatus,
    FlowStatus,
    FutureStatus,
    QualityStatus,
    TimedriverStatus,
    TodoStatus,
    UpgradeStatus,
)
from .clock import CivilClock, parse_civil_date, parse_hhmm
from .errors import ValidationFailed
from .module_ledger import ModuleStatusLedger
from .repository import Repository


log = structlog.get_logger(__name__)

DEFAULT_MODULES = ("timedriver", "upgrade", "flow", "todo", "quality", "bodyshop")
KNOWN_MODULES = DEFAULT_MODULES + ("future",)


class DailyProgressAggregator:
    def __init__(
        self,
        repo: Repository,
        ledger: ModuleStatusLedger,
        clock: CivilClock,
        modules: Optional[Sequence[str]] = None,
        upgrade_deadline: str = "08:30",
        quality_target: int = 5,
        future_unlock_hour: int = 15,
    ) -> None:
        modules = list(modules or DEFAULT_MODULES)
        unknown = [m for m in modules if m not in KNOWN_MODULES]
        if unknown or not modules:
            raise ValueError(f"invalid progress modules: {modules}")
        self.repo = repo
        self.ledger = ledger
        self.clock = clock
        self.modules: List[str] = modules
        self.deadline = parse_hhmm(upgrade_deadline)
        self.quality_target = quality_target
        self.future_unlock_hour = future_unlock_hour

    @property
    def weight(self) -> float:
        return 1.0 / len(self.modules)

    def get_daily_status(self, date: str) -> DailyStatus:
        try:
            parse_civil_date(date)
        except ValueError as exc:
            raise ValidationFailed("Date must be YYYY-MM-DD", field="date") from exc
        purged = self.repo.cleanup_old_completed_flow_tasks(self.clock.today())
        if purged:
            self.repo.commit()
            log.info("flow_tasks_purged", count=purged)

        timedriver, timedriver_ratio = self._timedriver(date)
        upgrade, upgrade_ratio = self._upgrade(date)
        flow, flow_ratio = self._flow(date)
        todo, todo_ratio = self._todo(date)
        quality, quality_ratio = self._quality(date)
        bodyshop, bodyshop_ratio = self._bodyshop(date)
        future, future_ratio = self._future(date)

        ratios: Dict[str, float] = {
            "timedriver": timedriver_ratio,
            "upgrade": upgrade_ratio,
            "flow": flow_ratio,
            "todo": todo_ratio,
            "quality": quality_ratio,
            "bodyshop": bodyshop_ratio,
            "future": future_ratio,
        }
        contributions = {m: ratios[m] * self.weight for m in self.modules}
        # half-up, not banker's rounding
        overall = math.floor(100 * sum(ratios[m] for m in self.modules) / len(self.modules) + 0.5)

        return DailyStatus(
            date=date,
            timedriver=timedriver,
            upgrade=upgrade,
            flow=flow,
            todo=todo,
            quality=quality,
            bodyshop=bodyshop,
            future=future,
            contributions=contributions,
            overall_progress=max(0, min(100, overall)),
            has_postponed_tasks=(todo.postponed_to_future + todo.postponed_from_past) > 0,
        )

    # ---------- modules ----------
    def _timedriver(self, date: str):
        calc = self.repo.get_timedriver_calculation(date)
        done = self.ledger.is_done("timedriver", date) or calc is not None
        details = None
        if calc is not None:
            details = f"{calc.rentals} rentals across {len(calc.drivers_data or [])} drivers"
        return TimedriverStatus(is_done=done, details=details), 1.0 if done else 0.0

    def _upgrade_overdue(self, date: str) -> bool:
        today = self.clock.today()
        if date < today:
            return True
        if date == today:
            return self.clock.is_past(*self.deadline)
        return False

    def _upgrade(self, date: str):
        rows = self.repo.upgrade_vehicles_for_date(date)
        sold = [v for v in rows if v.is_sold]
        pending = [v for v in rows if not v.is_sold]
        done = len(sold) > 0
        status = UpgradeStatus(
            is_done=done,
            has_pending=len(pending) > 0,
            is_overdue=not rows and self._upgrade_overdue(date),
            sold=len(sold),
            total=len(rows),
            pending_vehicles=[UpgradeVehicleResponse.model_validate(v) for v in pending],
        )
        return status, 1.0 if done else 0.0

    def _flow(self, date: str):
        tasks = []
        for t in self.repo.list_flow_tasks():
            created_on = self.clock.civil_date_of(t.created_at)
            if created_on > date:
                continue
            if t.completed and created_on < date:
                continue
            tasks.append(t)
        total = len(tasks)
        completed = sum(1 for t in tasks if t.completed)
        ratio = completed / total if total else 1.0
        status = FlowStatus(is_done=completed == total, completed=completed, pending=total - completed, total=total)
        return status, ratio

    def _todo(self, date: str):
        todays = []
        to_future = 0
        from_past = 0
        for t in self.repo.list_todos():
            if t.postponed_to_date and t.postponed_to_date > date:
                if not t.completed:
                    to_future += 1
                continue
            if t.postponed_to_date == date and not t.completed:
                from_past += 1
            todays.append(t)
        total = len(todays)
        completed = sum(1 for t in todays if t.completed)
        ratio = completed / total if total else 1.0
        status = TodoStatus(
            is_done=completed == total and to_future == 0 and from_past == 0,
            completed=completed,
            total=total,
            postponed=to_future + from_past,
            postponed_to_future=to_future,
            postponed_from_past=from_past,
        )
        return status, ratio

    def _quality(self, date: str):
        checks = self.repo.quality_checks_for_date(date)
        n = len(checks)
        status = QualityStatus(
            is_done=n >= self.quality_target,
            total_checks=n,
            passed_checks=sum(1 for c in checks if c.passed),
            target=self.quality_target,
            incomplete_tasks=len(self.repo.incomplete_driver_tasks()),
        )
        return status, min(n / self.quality_target, 1.0) if self.quality_target > 0 else 1.0

    def _bodyshop(self, date: str):
        total = len(self.repo.active_vehicles())
        with_comment = total - len(self.repo.vehicles_without_daily_comment(date))
        status = BodyshopStatus(
            is_done=with_comment == total,
            vehicles_without_comment=total - with_comment,
            total=total,
        )
        return status, with_comment / total if total else 1.0

    def _future(self, date: str):
        planning = self.repo.get_future_planning(date)
        done = self.ledger.is_done("future", date) or planning is not None
        today = self.clock.today()
        if date == today:
            locked = not self.clock.is_past(self.future_unlock_hour, 0)
        else:
            locked = date > today
        status = FutureStatus(
            is_done=done,
            is_locked=locked,
            data=FuturePlanningResponse.model_validate(planning) if planning else None,
        )
        return status, 1.0 if done else 0.0
