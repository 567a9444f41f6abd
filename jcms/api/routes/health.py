"""
健康检查接口

用于容器编排系统进行存活探测和就绪探测。
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from jcms.api.deps import get_db_session
from jcms.services.analytics import system_health

router = APIRouter()


@router.get("/healthz")
async def healthcheck() -> dict:
    """返回 {"status": "ok"} 表示服务正常运行"""
    return {"status": "ok"}


@router.get("/healthz/ready")
async def readiness(db: AsyncSession = Depends(get_db_session)) -> dict:
    """就绪探测：检查数据库连接"""
    health = await system_health(db)
    return {"status": "ok" if health["database"] == "ok" else "degraded", "database": health["database"]}
