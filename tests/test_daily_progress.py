import pytest

from branchboard.services.daily_progress import DailyProgressAggregator
from branchboard.services.errors import ValidationFailed
from conftest import TODAY


WEIGHT = 1 / 6


def _flow(lifecycle, plate="M - AB 1"):
    return lifecycle.create_flow_task({"license_plate": plate, "task_type": "cleaning"})


def test_empty_day_is_vacuously_done(aggregator):
    status = aggregator.get_daily_status(TODAY)
    for module in ("flow", "todo", "bodyshop"):
        assert getattr(status, module).is_done
        assert status.contributions[module] == pytest.approx(WEIGHT)
    assert status.contributions["timedriver"] == 0
    assert status.contributions["quality"] == 0
    assert status.overall_progress == 50
    assert status.has_postponed_tasks is False


def test_flow_scenario_partial_credit_and_delete(aggregator, lifecycle):
    tasks = [_flow(lifecycle, f"M - AB {i}") for i in range(3)]
    status = aggregator.get_daily_status(TODAY)
    assert status.flow.total == 3
    assert status.contributions["flow"] == 0

    lifecycle.update_flow_task(tasks[0].id, {"completed": True})
    lifecycle.update_flow_task(tasks[1].id, {"completed": True})
    status = aggregator.get_daily_status(TODAY)
    assert (status.flow.completed, status.flow.pending) == (2, 1)
    assert status.contributions["flow"] == pytest.approx(WEIGHT * 2 / 3)

    for task in tasks:
        lifecycle.delete_flow_task(task.id)
    status = aggregator.get_daily_status(TODAY)
    assert status.flow.total == 0
    assert status.flow.is_done
    assert status.contributions["flow"] == pytest.approx(WEIGHT)


def test_completing_more_items_never_lowers_contribution(aggregator, lifecycle):
    first = lifecycle.create_todo({"title": "Keys"})
    second = lifecycle.create_todo({"title": "Fuel cards"})
    before = aggregator.get_daily_status(TODAY).contributions["todo"]
    lifecycle.apply_todo_update(first.id, {"completed": True})
    middle = aggregator.get_daily_status(TODAY).contributions["todo"]
    lifecycle.apply_todo_update(second.id, {"completed": True})
    after = aggregator.get_daily_status(TODAY).contributions["todo"]
    assert before < middle < after
    assert after == pytest.approx(WEIGHT)


@pytest.mark.parametrize(
    "checks, done, ratio",
    [(4, False, 4 / 5), (5, True, 1.0), (6, True, 1.0)],
)
def test_quality_threshold(aggregator, lifecycle, checks, done, ratio):
    for i in range(checks):
        lifecycle.create_quality_check({"license_plate": f"M - Q {i}", "passed": i % 2 == 0})
    status = aggregator.get_daily_status(TODAY)
    assert status.quality.total_checks == checks
    assert status.quality.is_done is done
    assert status.contributions["quality"] == pytest.approx(WEIGHT * ratio)


def test_quality_counts_only_checks_of_the_civil_day(aggregator, lifecycle, frozen):
    frozen.shift(days=-1)
    lifecycle.create_quality_check({"license_plate": "M - Q 1", "passed": True})
    frozen.shift(days=1)
    lifecycle.create_quality_check({"license_plate": "M - Q 2", "passed": False})
    status = aggregator.get_daily_status(TODAY)
    assert status.quality.total_checks == 1
    assert status.quality.passed_checks == 0
    assert status.quality.incomplete_tasks == 1


def test_upgrade_overdue_after_deadline_with_no_vehicles(aggregator, lifecycle):
    status = aggregator.get_daily_status(TODAY)
    assert status.upgrade.is_overdue is True
    assert status.upgrade.is_done is False

    lifecycle.create_upgrade_vehicle({"license_plate": "M - UP 1", "model": "Golf", "reason": "bigger car"})
    status = aggregator.get_daily_status(TODAY)
    assert status.upgrade.is_overdue is False
    assert status.upgrade.has_pending is True
    assert len(status.upgrade.pending_vehicles) == 1


def test_upgrade_not_overdue_before_deadline(aggregator, frozen, clock):
    frozen.set_local(clock, 2025, 6, 10, 8, 29)
    assert aggregator.get_daily_status(TODAY).upgrade.is_overdue is False
    assert aggregator.get_daily_status("2025-06-11").upgrade.is_overdue is False
    assert aggregator.get_daily_status("2025-06-09").upgrade.is_overdue is True


def test_upgrade_overdue_is_anchored_to_the_requested_date(aggregator, frozen, clock):
    frozen.set_local(clock, 2025, 6, 10, 23, 0)
    assert aggregator.get_daily_status("2025-06-11").upgrade.is_overdue is False
    assert aggregator.get_daily_status("2025-06-09").upgrade.is_overdue is True

    frozen.set_local(clock, 2025, 6, 10, 6, 0)
    assert aggregator.get_daily_status("2025-06-09").upgrade.is_overdue is True
    assert aggregator.get_daily_status(TODAY).upgrade.is_overdue is False


def test_upgrade_done_when_one_sold(aggregator, lifecycle):
    row = lifecycle.create_upgrade_vehicle({"license_plate": "M - UP 1", "model": "Golf", "reason": "family"})
    lifecycle.update_upgrade_vehicle(row.id, {"is_sold": True}, actor="BM")
    status = aggregator.get_daily_status(TODAY)
    assert status.upgrade.is_done
    assert status.upgrade.sold == 1
    assert status.contributions["upgrade"] == pytest.approx(WEIGHT)


def test_timedriver_done_from_ledger(aggregator, ledger):
    assert not aggregator.get_daily_status(TODAY).timedriver.is_done
    ledger.set_status("timedriver", TODAY, True)
    assert aggregator.get_daily_status(TODAY).timedriver.is_done


def test_bodyshop_ratio_follows_daily_comments(aggregator, lifecycle):
    first = lifecycle.create_vehicle({"license_plate": "M - BS 1"})
    lifecycle.create_vehicle({"license_plate": "M - BS 2"})
    status = aggregator.get_daily_status(TODAY)
    assert status.bodyshop.vehicles_without_comment == 2
    assert status.contributions["bodyshop"] == 0

    lifecycle.add_vehicle_comment(first.id, {"content": "Paint drying"})
    status = aggregator.get_daily_status(TODAY)
    assert not status.bodyshop.is_done
    assert status.contributions["bodyshop"] == pytest.approx(WEIGHT / 2)


def test_past_vehicles_leave_the_active_set(aggregator, lifecycle):
    vehicle = lifecycle.create_vehicle({"license_plate": "M - BS 1"})
    lifecycle.apply_vehicle_update(vehicle.id, {"is_past": True})
    status = aggregator.get_daily_status(TODAY)
    assert status.bodyshop.total == 0
    assert status.bodyshop.is_done


def test_todo_postponement_accounting(aggregator, lifecycle, repo):
    vehicle = lifecycle.create_vehicle({"license_plate": "M - BS 1"})
    lifecycle.apply_vehicle_update(vehicle.id, {"ready_for_collection": True})
    todo = repo.list_todos()[0]
    lifecycle.postpone_todo(todo.id)

    status = aggregator.get_daily_status(TODAY)
    assert status.todo.postponed_to_future == 1
    assert status.todo.total == 0
    assert status.todo.is_done is False
    assert status.has_postponed_tasks is True

    tomorrow = aggregator.get_daily_status("2025-06-11")
    assert tomorrow.todo.postponed_from_past == 1
    assert tomorrow.todo.total == 1
    assert tomorrow.todo.is_done is False


def test_stale_completed_flow_tasks_are_purged(aggregator, lifecycle, repo, frozen):
    frozen.shift(days=-1)
    done = _flow(lifecycle, "M - OLD 1")
    open_task = _flow(lifecycle, "M - OLD 2")
    done_id, open_id = done.id, open_task.id
    lifecycle.update_flow_task(done_id, {"completed": True})
    frozen.shift(days=1)

    status = aggregator.get_daily_status(TODAY)
    assert repo.get_flow_task(done_id) is None
    assert repo.get_flow_task(open_id) is not None
    assert status.flow.total == 1
    assert status.flow.pending == 1


def test_future_module_lock_and_done(aggregator, lifecycle, frozen, clock):
    status = aggregator.get_daily_status(TODAY)
    assert status.future.is_locked
    assert not status.future.is_done

    frozen.set_local(clock, 2025, 6, 10, 15, 0)
    lifecycle.save_future_planning(
        {
            "date": TODAY,
            "reservations_total": 6,
            "reservations_car": 3,
            "reservations_van": 2,
            "reservations_tas": 1,
        }
    )
    status = aggregator.get_daily_status(TODAY)
    assert not status.future.is_locked
    assert status.future.is_done
    assert status.future.data.reservations_total == 6
    assert "future" not in status.contributions


def test_weighted_module_set_is_configurable(repo, ledger, clock):
    aggregator = DailyProgressAggregator(repo, ledger, clock, modules=["flow", "todo", "future"])
    status = aggregator.get_daily_status(TODAY)
    assert set(status.contributions) == {"flow", "todo", "future"}
    assert status.contributions["flow"] == pytest.approx(1 / 3)
    assert status.overall_progress == 67


def test_unknown_module_rejected(repo, ledger, clock):
    with pytest.raises(ValueError):
        DailyProgressAggregator(repo, ledger, clock, modules=["flow", "coffee"])


def test_full_day_reaches_one_hundred(aggregator, lifecycle, ledger):
    ledger.set_status("timedriver", TODAY, True)
    row = lifecycle.create_upgrade_vehicle({"license_plate": "M - UP 1", "model": "Golf", "reason": "family"})
    lifecycle.update_upgrade_vehicle(row.id, {"is_sold": True})
    for i in range(5):
        lifecycle.create_quality_check({"license_plate": f"M - Q {i}", "passed": True})
    assert aggregator.get_daily_status(TODAY).overall_progress == 100


def test_overall_progress_rounds_half_up(aggregator, lifecycle):
    _flow(lifecycle)
    lifecycle.create_vehicle({"license_plate": "M - BS 1"})
    todos = [lifecycle.create_todo({"title": f"Task {i}"}) for i in range(4)]
    for todo in todos[:3]:
        lifecycle.apply_todo_update(todo.id, {"completed": True})
    status = aggregator.get_daily_status(TODAY)
    # 0.75 of one sixth is 12.5 points
    assert status.contributions["todo"] == pytest.approx(WEIGHT * 0.75)
    assert status.overall_progress == 13


def test_malformed_date_rejected(aggregator):
    with pytest.raises(ValidationFailed) as exc:
        aggregator.get_daily_status("2025-6-10")
    assert exc.value.field == "date"
