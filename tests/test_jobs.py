"""后台维护任务测试"""

import asyncio

import pytest

from jcms.services.jobs import MaintenanceScheduler, default_jobs, run_all_once


def test_default_jobs():
    jobs = default_jobs()
    assert set(jobs) == {"subscriptions", "file_cleanup", "scheduled_content"}
    assert all(interval > 0 for _, interval in jobs.values())


@pytest.mark.asyncio
async def test_run_all_once_on_empty_database(database):
    assert await run_all_once() == {"subscriptions": 0, "file_cleanup": 0, "scheduled_content": 0}


@pytest.mark.asyncio
async def test_scheduler_survives_failing_job(database):
    calls = {"ok": 0, "bad": 0}

    async def ok_job(session):
        calls["ok"] += 1
        return 1

    async def bad_job(session):
        calls["bad"] += 1
        raise RuntimeError("boom")

    scheduler = MaintenanceScheduler({"ok": (ok_job, 3600), "bad": (bad_job, 3600)})
    await scheduler.start()
    assert scheduler.is_running

    for _ in range(50):
        if calls["ok"] and calls["bad"]:
            break
        await asyncio.sleep(0.01)

    # 重复启动不会创建新循环
    await scheduler.start()

    await scheduler.stop()
    assert not scheduler.is_running
    assert calls == {"ok": 1, "bad": 1}
