"""
JCMS - 多租户内容管理服务 主包

包含以下子模块：
- api/        : API 路由和依赖注入
- auth/       : 认证授权（JWT、密码、权限表、登录限流）
- db/         : 数据库连接和会话管理
- infra/      : 基础设施（日志、文件存储、图片处理、Cloudflare Tunnel）
- middleware/ : 请求追踪、审计日志中间件
- models/     : SQLAlchemy ORM 数据模型
- schemas/    : Pydantic 请求/响应模式
- services/   : 业务逻辑服务层
"""
