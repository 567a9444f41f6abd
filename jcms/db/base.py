"""
SQLAlchemy ORM 基类定义

所有数据库模型（租户、用户、内容、媒体文件、集合、订阅……）都继承自这个 Base 类。
Base.metadata 汇总了全部表结构，供 init_models() 与 Alembic 使用。
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """声明式基类（SQLAlchemy 2.0 风格）"""
    pass
