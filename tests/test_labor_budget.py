from types import SimpleNamespace

import pytest

from branchboard.services.errors import ValidationFailed
from branchboard.services.labor_budget import allocate, total_budget_minutes


def _driver(id, initials, hours):
    return SimpleNamespace(id=id, initials=initials, max_daily_hours=hours)


def test_budget_split_by_working_hours():
    out = allocate(20, 16.39, [_driver(1, "JS", 8), _driver(2, "MW", 4)])
    assert out[0] == {"id": 1, "initials": "JS", "max_hours": 8.0, "fair_hours": 3, "fair_minutes": 39, "percent": 46}
    assert out[1] == {"id": 2, "initials": "MW", "max_hours": 4.0, "fair_hours": 1, "fair_minutes": 49, "percent": 45}


def test_percent_is_capped():
    out = allocate(100, 16.39, [_driver(1, "JS", 2)])
    assert out[0]["percent"] == 100
    assert out[0]["fair_hours"] * 60 + out[0]["fair_minutes"] == 1639


def test_total_budget_minutes():
    assert total_budget_minutes(20, 16.39) == pytest.approx(327.8)


@pytest.mark.parametrize(
    "rentals, drivers, field",
    [
        (0, [_driver(1, "JS", 8)], "rentals"),
        (10, [], "driver_ids"),
        (10, [_driver(1, "JS", 0)], "driver_ids"),
    ],
)
def test_invalid_inputs(rentals, drivers, field):
    with pytest.raises(ValidationFailed) as exc:
        allocate(rentals, 16.39, drivers)
    assert exc.value.field == field
