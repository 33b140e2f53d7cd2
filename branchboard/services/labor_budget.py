"""
Timedriver labor budget: split the day's driver minutes across the drivers
on shift in proportion to how long each may work.
"""
from typing import Any, Dict, List, Sequence

from .errors import ValidationFailed


def total_budget_minutes(rentals: int, budget_per_rental: float) -> float:
    return round(rentals * budget_per_rental, 2)


def allocate(rentals: int, budget_per_rental: float, drivers: Sequence[Any]) -> List[Dict[str, Any]]:
    """Return one allocation dict per driver (id, initials, max_hours, fair_hours, fair_minutes, percent)."""
    if rentals <= 0:
        raise ValidationFailed("Rentals must be greater than zero", field="rentals")
    if budget_per_rental <= 0:
        raise ValidationFailed("Budget per rental must be greater than zero", field="budget_per_rental")
    if not drivers:
        raise ValidationFailed("Select at least one driver", field="driver_ids")

    total_hours = sum(float(d.max_daily_hours or 0) for d in drivers)
    if total_hours <= 0:
        raise ValidationFailed("Selected drivers have no working hours", field="driver_ids")

    budget = rentals * budget_per_rental
    out: List[Dict[str, Any]] = []
    for d in drivers:
        max_hours = float(d.max_daily_hours or 0)
        fair = int(round(max_hours / total_hours * budget))
        percent = min(100, int(round(fair / 60 / max_hours * 100))) if max_hours else 0
        out.append(
            {
                "id": d.id,
                "initials": d.initials,
                "max_hours": max_hours,
                "fair_hours": fair // 60,
                "fair_minutes": fair % 60,
                "percent": percent,
            }
        )
    return out
