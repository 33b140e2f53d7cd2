"""FastAPI dependency wiring: one repository per request session, shared clock and hub from app state."""
from typing import Callable

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from .config import settings
from .db import get_db
from .services.clock import CivilClock
from .services.daily_progress import DailyProgressAggregator
from .services.lifecycle import TaskLifecycle
from .services.live_hub import LiveUpdateHub
from .services.module_ledger import ModuleStatusLedger
from .services.repository import Repository
from .services.users import UserService


def get_clock(request: Request) -> CivilClock:
    return request.app.state.clock


def get_hub(request: Request) -> LiveUpdateHub:
    return request.app.state.hub


def get_notifier(hub: LiveUpdateHub = Depends(get_hub)) -> Callable[[str], None]:
    return hub.notify


def get_repository(db: Session = Depends(get_db), clock: CivilClock = Depends(get_clock)) -> Repository:
    return Repository(db, clock)


def get_ledger(repo: Repository = Depends(get_repository)) -> ModuleStatusLedger:
    return ModuleStatusLedger(repo)


def build_lifecycle(repo: Repository, notify: Callable[[str], None]) -> TaskLifecycle:
    return TaskLifecycle(
        repo,
        ModuleStatusLedger(repo),
        notify,
        default_budget_per_rental=settings.default_budget_per_rental,
        countdown_days=settings.vehicle_countdown_days,
        warning_days=settings.vehicle_warning_days,
    )


def get_lifecycle(
    repo: Repository = Depends(get_repository),
    notify: Callable[[str], None] = Depends(get_notifier),
) -> TaskLifecycle:
    return build_lifecycle(repo, notify)


def get_aggregator(
    repo: Repository = Depends(get_repository),
    ledger: ModuleStatusLedger = Depends(get_ledger),
) -> DailyProgressAggregator:
    return DailyProgressAggregator(
        repo,
        ledger,
        repo.clock,
        modules=settings.progress_modules,
        upgrade_deadline=settings.upgrade_deadline,
        quality_target=settings.quality_daily_target,
        future_unlock_hour=settings.future_unlock_hour,
    )


def get_user_service(
    repo: Repository = Depends(get_repository),
    notify: Callable[[str], None] = Depends(get_notifier),
) -> UserService:
    return UserService(repo, notify)
