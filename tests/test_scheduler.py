import asyncio

from branchboard.services.scheduler import MidnightResetScheduler


def test_next_delay_adds_buffer(clock):
    scheduler = MidnightResetScheduler(clock, lambda: None, buffer_seconds=1.0)
    assert scheduler.next_delay() == clock.seconds_until_midnight() + 1.0


def test_failing_reset_does_not_stop_the_loop(clock):
    calls = []
    delays = []

    async def scenario():
        done = asyncio.Event()

        def reset():
            calls.append(len(calls))
            if len(calls) == 1:
                raise RuntimeError("database locked")
            done.set()
            return "ok"

        async def fake_sleep(seconds):
            delays.append(seconds)
            await asyncio.sleep(0)

        scheduler = MidnightResetScheduler(clock, reset, sleep=fake_sleep)
        scheduler.start()
        assert scheduler.running
        await asyncio.wait_for(done.wait(), timeout=1)
        await scheduler.stop()
        return scheduler

    scheduler = asyncio.run(scenario())
    assert len(calls) >= 2
    assert len(delays) >= 2
    assert delays[0] == clock.seconds_until_midnight() + 1.0
    assert not scheduler.running


def test_async_reset_supported(clock):
    seen = []

    async def reset():
        seen.append("ran")
        return {"reopened_todos": 0}

    scheduler = MidnightResetScheduler(clock, reset)
    assert asyncio.run(scheduler.run_once()) is True
    assert seen == ["ran"]


def test_run_once_reports_failure(clock):
    def reset():
        raise ValueError("boom")

    scheduler = MidnightResetScheduler(clock, reset)
    assert asyncio.run(scheduler.run_once()) is False


def test_stop_without_start_is_noop(clock):
    scheduler = MidnightResetScheduler(clock, lambda: None)
    asyncio.run(scheduler.stop())
    assert not scheduler.running
