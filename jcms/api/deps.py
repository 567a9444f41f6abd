"""
API 依赖注入函数

路由共用的依赖项：数据库会话、客户端 IP。

使用示例：
    @router.get("/example")
    async def example_endpoint(
        ctx: AuthContext = Depends(get_auth_context),
        db: AsyncSession = Depends(get_db_session),
    ):
        pass
"""

from jcms.db.session import get_db


def client_ip(request) -> str:
    """客户端 IP，优先取反向代理的 X-Forwarded-For"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


# 重新导出数据库会话获取函数，方便路由模块导入
get_db_session = get_db
