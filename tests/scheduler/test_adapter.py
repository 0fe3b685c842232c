from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from swim_mirror.config import ScheduleConfig, ScheduleType
from swim_mirror.scheduler import REFRESH_JOB_ID, MirrorScheduler


def test_build_triggers() -> None:
    cron = MirrorScheduler._build_trigger(ScheduleConfig(type=ScheduleType.CRON, value="0 3 * * *"))
    assert isinstance(cron, CronTrigger)

    interval = MirrorScheduler._build_trigger(ScheduleConfig(type=ScheduleType.INTERVAL, value=30))
    assert isinstance(interval, IntervalTrigger)
    assert interval.interval.total_seconds() == 30

    kwargs = MirrorScheduler._build_trigger(
        ScheduleConfig(type=ScheduleType.INTERVAL, value={"hours": 6})
    )
    assert kwargs.interval.total_seconds() == 6 * 3600

    future = (datetime.now() + timedelta(minutes=5)).isoformat()
    once = MirrorScheduler._build_trigger(ScheduleConfig(type=ScheduleType.ONCE, value=future))
    assert isinstance(once, DateTrigger)


def test_interval_requires_numeric() -> None:
    schedule = ScheduleConfig(type=ScheduleType.INTERVAL, value=30)
    schedule.value = "fast"
    with pytest.raises(ValueError):
        MirrorScheduler._build_trigger(schedule)


def test_schedule_refresh_registers_a_single_job() -> None:
    calls: list[dict] = []

    class StubScheduler:
        def add_job(self, callback, trigger, id, replace_existing, max_instances, coalesce):  # noqa: A002
            calls.append(
                {
                    "id": id,
                    "trigger": type(trigger).__name__,
                    "callback": callback,
                    "replace_existing": replace_existing,
                    "max_instances": max_instances,
                    "coalesce": coalesce,
                }
            )

        def get_jobs(self):
            return []

        def start(self):
            calls.append({"event": "started"})

        def shutdown(self, wait=False):  # noqa: ARG002
            calls.append({"event": "shutdown"})

        def remove_job(self, job_id):
            calls.append({"event": "remove", "id": job_id})

    def refresh() -> None:
        return None

    adapter = MirrorScheduler(scheduler=StubScheduler())  # type: ignore[arg-type]
    adapter.schedule_refresh(ScheduleConfig(type=ScheduleType.CRON, value="0 3 * * *"), refresh)
    adapter.start()
    adapter.start()
    assert adapter.remove_refresh()
    adapter.shutdown()

    assert calls == [
        {
            "id": REFRESH_JOB_ID,
            "trigger": "CronTrigger",
            "callback": refresh,
            "replace_existing": True,
            "max_instances": 1,
            "coalesce": True,
        },
        {"event": "started"},
        {"event": "remove", "id": REFRESH_JOB_ID},
        {"event": "shutdown"},
    ]


def test_pending_jobs_are_listed_and_removable() -> None:
    adapter = MirrorScheduler(scheduler=BackgroundScheduler())
    adapter.schedule_refresh(ScheduleConfig(type=ScheduleType.INTERVAL, value=3600), lambda: None)
    jobs = adapter.list_jobs()
    assert [job["id"] for job in jobs] == [REFRESH_JOB_ID]
    assert "interval" in jobs[0]["trigger"]
    assert adapter.remove_refresh()
    assert not adapter.remove_refresh()
    assert adapter.list_jobs() == []
