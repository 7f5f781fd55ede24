import logging

import pytest

from market_core.scheduler import JobResult, MarketScheduler
from tests.helpers import wait_for


def _counting_job(name: str, counter: list, fail: bool = False):
    async def run() -> JobResult:
        counter.append(1)
        if fail:
            raise RuntimeError(f"{name} storage unavailable")
        return JobResult.success(name, count=len(counter))

    return run


async def test_immediate_job_runs_at_start_and_delayed_job_waits():
    scheduler = MarketScheduler()
    immediate, delayed = [], []
    save = scheduler.add_job("save", _counting_job("save", immediate), interval=60)
    decay = scheduler.add_job("decay", _counting_job("decay", delayed), interval=60, initial_delay=60)

    await scheduler.start()
    try:
        assert await wait_for(lambda: save.runs == 1)
        assert delayed == []
        assert decay.runs == 0
    finally:
        await scheduler.stop()


async def test_job_repeats_every_interval():
    scheduler = MarketScheduler()
    calls = []
    job = scheduler.add_job("tick", _counting_job("tick", calls), interval=0.02)

    await scheduler.start()
    try:
        assert await wait_for(lambda: job.runs >= 3)
    finally:
        await scheduler.stop()
    assert job.failures == 0
    assert job.last_result.ok


async def test_failures_are_logged_and_job_keeps_its_schedule(caplog):
    scheduler = MarketScheduler()
    calls = []
    job = scheduler.add_job("save", _counting_job("save", calls, fail=True), interval=0.02)

    with caplog.at_level(logging.ERROR, logger="market_core.scheduler"):
        await scheduler.start()
        try:
            assert await wait_for(lambda: job.runs >= 3)
        finally:
            await scheduler.stop()

    assert job.failures == job.runs
    assert isinstance(job.last_result.error, RuntimeError)
    assert "Job save failed" in caplog.text


async def test_run_once_records_result_outside_schedule():
    scheduler = MarketScheduler()
    calls = []
    scheduler.add_job("save", _counting_job("save", calls), interval=60)

    result = await scheduler.run_once("save")

    assert result.ok
    assert result.detail == {"count": 1}
    assert scheduler.get_job("save").runs == 1


async def test_stop_halts_further_runs():
    scheduler = MarketScheduler()
    calls = []
    job = scheduler.add_job("tick", _counting_job("tick", calls), interval=0.01)

    await scheduler.start()
    assert await wait_for(lambda: job.runs >= 1)
    await scheduler.stop()
    runs_after_stop = len(calls)

    assert not scheduler.running
    assert not await wait_for(lambda: len(calls) > runs_after_stop, timeout=0.1)


def test_add_job_validation():
    scheduler = MarketScheduler()
    with pytest.raises(ValueError):
        scheduler.add_job("bad", _counting_job("bad", []), interval=0)
    with pytest.raises(ValueError):
        scheduler.add_job("bad", _counting_job("bad", []), interval=1, initial_delay=-1)
    scheduler.add_job("ok", _counting_job("ok", []), interval=1)
    with pytest.raises(ValueError):
        scheduler.add_job("ok", _counting_job("ok", []), interval=1)
