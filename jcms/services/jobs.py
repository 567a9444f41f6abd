"""
后台维护任务

三个独立循环，各自按配置的间隔运行：
- subscriptions: 标记到期订阅，为相应租户的文件设置过期时间
- file_cleanup:  删除 expires_at 已过的文件
- scheduled_content: 发布到点的定时内容

每次运行使用独立的数据库会话；单次失败只记录日志，不终止循环。
"""

import asyncio
from collections.abc import Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from jcms.config import get_settings
from jcms.db.session import SessionLocal
from jcms.infra.logging import get_logger
from jcms.services.content import publish_due_content
from jcms.services.media import cleanup_expired
from jcms.services.subscriptions import expire_due_subscriptions

logger = get_logger(__name__)

Job = Callable[[AsyncSession], Awaitable[int]]


def default_jobs() -> dict[str, tuple[Job, int]]:
    """任务名 -> (任务函数, 间隔秒数)"""
    settings = get_settings()
    return {
        "subscriptions": (expire_due_subscriptions, settings.subscription_check_interval_seconds),
        "file_cleanup": (cleanup_expired, settings.file_cleanup_interval_seconds),
        "scheduled_content": (publish_due_content, settings.content_schedule_interval_seconds),
    }


async def run_job(name: str, job: Job) -> int:
    """在独立会话中执行一次任务"""
    async with SessionLocal() as session:
        count = await job(session)
    if count:
        logger.info(f"维护任务完成: {name}", extra={"job": name, "affected": count})
    return count


async def run_all_once() -> dict[str, int]:
    """依次执行全部任务一次（供脚本调用）"""
    return {name: await run_job(name, job) for name, (job, _) in default_jobs().items()}


class MaintenanceScheduler:
    """管理后台维护循环的启动与停止"""

    def __init__(self, jobs: dict[str, tuple[Job, int]] | None = None):
        self.jobs = jobs if jobs is not None else default_jobs()
        self.is_running = False
        self._tasks: list[asyncio.Task] = []

    async def start(self) -> None:
        if self.is_running:
            logger.warning("维护任务已在运行")
            return
        self.is_running = True
        self._tasks = [
            asyncio.create_task(self._loop(name, job, interval), name=f"jcms-job-{name}")
            for name, (job, interval) in self.jobs.items()
        ]
        logger.info(f"维护任务已启动: {', '.join(self.jobs)}")

    async def stop(self) -> None:
        self.is_running = False
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []
        logger.info("维护任务已停止")

    async def _loop(self, name: str, job: Job, interval: int) -> None:
        while self.is_running:
            try:
                await run_job(name, job)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error(f"维护任务失败: {name}: {exc}", exc_info=True)
            await asyncio.sleep(interval)
