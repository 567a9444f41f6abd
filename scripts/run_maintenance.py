"""
手动执行一次后台维护任务

适合在关闭了 JOBS_ENABLED 的部署中由 cron 调用。

用法示例：
    uv run python scripts/run_maintenance.py
    uv run python scripts/run_maintenance.py --job file_cleanup
"""

import argparse
import asyncio

from jcms.infra.logging import setup_logging
from jcms.services.jobs import default_jobs, run_all_once, run_job


async def main():
    jobs = default_jobs()
    parser = argparse.ArgumentParser(description="Run maintenance jobs once")
    parser.add_argument("--job", choices=sorted(jobs), help="Run a single job (default: all)")
    args = parser.parse_args()

    setup_logging()
    if args.job:
        job, _ = jobs[args.job]
        results = {args.job: await run_job(args.job, job)}
    else:
        results = await run_all_once()

    for name, affected in results.items():
        print(f"{name}: {affected}")


if __name__ == "__main__":
    asyncio.run(main())
