"""
数据库模块

- base.py    : SQLAlchemy 基类定义
- session.py : 数据库会话管理（引擎、异步会话工厂）

生产环境使用 PostgreSQL + asyncpg，测试环境使用 SQLite + aiosqlite。

典型使用方式：
    from jcms.db.session import get_db

    async def my_endpoint(db: AsyncSession = Depends(get_db)):
        result = await db.execute(select(User))
        users = result.scalars().all()
"""
