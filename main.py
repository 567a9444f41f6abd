"""
JCMS - 启动入口

运行方式：
    - 直接执行：python main.py
    - 或者使用：uvicorn jcms.main:app --reload

服务启动后可以访问：
    - API 文档：http://localhost:8000/docs
    - 健康检查：http://localhost:8000/healthz
"""

import uvicorn

from jcms.config import get_settings


def main() -> None:
    """启动 FastAPI 服务器，端口与隧道转发端口一致"""
    settings = get_settings()
    uvicorn.run(
        "jcms.main:app",
        host="0.0.0.0",
        port=settings.tunnel_local_port,
        reload=settings.environment in ("dev", "development"),
    )


if __name__ == "__main__":
    main()
