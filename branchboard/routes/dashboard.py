from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..auth.security import get_current_user
from ..deps import get_aggregator, get_lifecycle
from ..models.models import User
from ..schemas.dashboard import DailyStatus
from ..services.daily_progress import DailyProgressAggregator
from ..services.lifecycle import TaskLifecycle


router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/status", response_model=DailyStatus)
def daily_status(
    date: Optional[str] = Query(None),
    aggregator: DailyProgressAggregator = Depends(get_aggregator),
    lifecycle: TaskLifecycle = Depends(get_lifecycle),
    user: User = Depends(get_current_user),
):
    day = lifecycle.check_date(date) if date else aggregator.clock.today()
    return aggregator.get_daily_status(day)
