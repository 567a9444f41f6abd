"""
FastAPI 应用实例

负责：
1. 创建 FastAPI 应用实例
2. 配置应用生命周期（存储目录、建表、内置角色、后台任务、隧道）
3. 注册中间件、异常处理器和所有 API 路由
4. 挂载 /public 静态目录（隧道对外暴露的集合文件）
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import select

from jcms.api.routes import api_router
from jcms.auth.permissions import ROLE_DESCRIPTIONS, ROLE_PERMISSIONS
from jcms.config import get_settings
from jcms.db.session import SessionLocal, init_models
from jcms.exceptions import DomainError
from jcms.infra.logging import get_logger, setup_logging
from jcms.infra.storage import get_storage
from jcms.infra.tunnel import get_tunnel_manager
from jcms.middleware import AuditLogMiddleware, RequestTraceMiddleware
from jcms.models import Role
from jcms.services.jobs import MaintenanceScheduler

# 配置结构化日志
setup_logging()
logger = get_logger(__name__)

settings = get_settings()


async def seed_system_roles() -> int:
    """
    写入内置角色

    已存在的角色保持不变（超级管理员可能修改过权限）。

    Returns:
        新写入的角色数
    """
    async with SessionLocal() as session:
        result = await session.execute(select(Role.name))
        existing = set(result.scalars().all())
        created = 0
        for name, permissions in ROLE_PERMISSIONS.items():
            if name in existing:
                continue
            session.add(Role(
                name=name,
                description=ROLE_DESCRIPTIONS.get(name),
                permissions=list(permissions),
                is_system=True,
            ))
            created += 1
        await session.commit()
    if created:
        logger.info(f"已写入内置角色: {created}")
    return created


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    应用生命周期管理器

    注意：
        - 开发环境：使用 init_models() 自动创建表
        - 生产环境：应该使用 Alembic 进行数据库迁移
    """
    # ========== 启动时执行 ==========
    logger.info(f"应用启动中... 环境: {settings.environment}")

    get_storage().ensure_root()
    settings.public_path.mkdir(parents=True, exist_ok=True)

    if settings.environment in ("dev", "development", "test"):
        await init_models()
        logger.info("数据库表初始化完成（开发模式）")
    else:
        logger.info("跳过自动建表，请使用 Alembic 迁移")

    await seed_system_roles()

    scheduler = MaintenanceScheduler()
    if settings.jobs_enabled:
        await scheduler.start()

    yield

    # ========== 关闭时执行 ==========
    if scheduler.is_running:
        await scheduler.stop()
    await get_tunnel_manager().stop()
    logger.info("应用已关闭")


app = FastAPI(
    title=settings.app_name,
    lifespan=lifespan,
)

# 注册中间件（注意顺序：后添加的先执行）
app.add_middleware(AuditLogMiddleware)  # 审计日志
app.add_middleware(RequestTraceMiddleware)  # 请求追踪

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)

# 隧道发布的集合文件，目录在启动时创建
app.mount("/public", StaticFiles(directory=settings.public_path, check_dir=False), name="public")


@app.exception_handler(HTTPException)
async def http_exception_handler(_: Request, exc: HTTPException):
    """
    统一错误响应格式：
    {
        "detail": "<错误信息>",
        "code": "<ERROR_CODE>"
    }
    """
    code = "UNKNOWN_ERROR"
    detail = exc.detail
    if isinstance(exc.detail, dict):
        code = exc.detail.get("code") or code
        detail = exc.detail.get("detail") or exc.detail.get("message") or detail
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": detail, "code": code},
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_: Request, exc: RequestValidationError):
    # 将 Pydantic 校验错误统一映射为 VALIDATION_ERROR
    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_errors(exc), "code": "VALIDATION_ERROR"},
    )


@app.exception_handler(DomainError)
async def domain_exception_handler(_: Request, exc: DomainError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code},
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx 中可能包含异常对象（如 ValueError），不能直接序列化
    return jsonable_encoder(exc.errors(), custom_encoder={Exception: str})
