"""
API 路由汇总

将所有子路由注册到主路由器，统一对外暴露。

路由模块说明：
- health.py        : 健康检查接口
- auth.py          : 登录、当前用户、修改密码
- users.py         : 用户管理
- tenants.py       : 租户管理与品牌设置
- tenant_switching.py : 可访问租户、租户上下文、按子域名查询
- content.py       : 富文本内容
- public.py        : 已发布内容的公开访问
- media.py         : 图片/文件上传、下载、转换
- collections.py   : 集合管理、ZIP 下载、隧道发布
- tunnel.py        : 隧道进程控制
- subscriptions.py : 订阅与发票
- analytics.py     : 统计分析
- activity.py      : 审计日志
- help.py          : 帮助中心与支持请求
- superadmin.py    : 角色与平台设置
"""

from fastapi import APIRouter

from jcms.api.routes import (
    activity,
    analytics,
    auth,
    collections,
    content,
    health,
    help,
    media,
    public,
    subscriptions,
    superadmin,
    tenant_switching,
    tenants,
    tunnel,
    users,
)

# 主路由器，包含所有 API 端点
api_router = APIRouter()

# 各子路由自带 prefix 和 tags
api_router.include_router(health.router, tags=["health"])
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(tenants.router)
api_router.include_router(tenant_switching.router)
api_router.include_router(content.router)
api_router.include_router(public.router)
api_router.include_router(media.router)
api_router.include_router(collections.router)
api_router.include_router(tunnel.router)
api_router.include_router(subscriptions.router)
api_router.include_router(analytics.router)
api_router.include_router(activity.router)
api_router.include_router(help.router)
api_router.include_router(superadmin.router)
