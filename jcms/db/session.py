"""
数据库会话管理

这个模块负责：
1. 创建数据库引擎（连接池）
2. 提供异步会话工厂
3. 实现 FastAPI 依赖注入的数据库会话获取函数

使用方式（在 FastAPI 路由中）：
    from jcms.db.session import get_db

    @router.get("/users")
    async def get_users(db: AsyncSession = Depends(get_db)):
        result = await db.execute(select(User))
        return result.scalars().all()
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from jcms.config import get_settings
from jcms.db.base import Base

settings = get_settings()


def _engine_options(database_url: str) -> dict:
    """根据数据库类型选择引擎参数"""
    if database_url.startswith("sqlite"):
        # SQLite 不需要连接池，每个会话独立打开连接
        return {"poolclass": NullPool}
    return {
        "pool_pre_ping": True,  # 使用前先测试连接是否有效
        "pool_size": 10,        # 连接池保持的连接数
        "max_overflow": 20,     # 允许超出 pool_size 的额外连接数
        "pool_timeout": 30,     # 获取连接的超时时间（秒）
        "pool_recycle": 1800,   # 连接回收时间（秒），防止数据库端超时断开
    }


# ==================== 创建数据库引擎 ====================
engine = create_async_engine(
    settings.database_url,
    echo=False,
    future=True,
    **_engine_options(settings.database_url),
)

# ==================== 创建会话工厂 ====================
# expire_on_commit=False：提交后仍可访问对象属性而不触发额外查询
SessionLocal = async_sessionmaker(
    engine,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    获取数据库会话（FastAPI 依赖注入函数）

    为每个请求创建一个新的会话，请求结束后自动关闭。
    """
    async with SessionLocal() as session:
        yield session


async def init_models() -> None:
    """
    初始化数据库表（仅开发/测试环境使用）

    生产环境应该使用 Alembic 进行数据库迁移，此方法不会修改已存在的表结构。
    """
    from jcms import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_models() -> None:
    """删除所有表（测试用）"""
    from jcms import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
