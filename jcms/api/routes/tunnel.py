"""
Cloudflare Tunnel 控制接口（管理员及以上）

同一进程内只运行一个 cloudflared 子进程，所有租户共用同一个公网地址。
"""

from fastapi import APIRouter, Depends

from jcms.auth.dependencies import AuthContext, require_admin_or_above
from jcms.infra.logging import get_logger
from jcms.infra.tunnel import get_tunnel_manager

logger = get_logger(__name__)

router = APIRouter(prefix="/api/tunnel", tags=["tunnel"])


@router.get("/status")
async def tunnel_status(ctx: AuthContext = Depends(require_admin_or_above)) -> dict:
    manager = get_tunnel_manager()
    available, version = await manager.is_available()
    return {**manager.status().to_dict(), "available": available, "version": version}


@router.post("/start")
async def start_tunnel(ctx: AuthContext = Depends(require_admin_or_above)) -> dict:
    """
    启动隧道，等待 cloudflared 输出 trycloudflare.com 地址

    已在运行时直接返回当前地址。
    """
    status = await get_tunnel_manager().start()
    logger.info("隧道已启动", extra={"tunnel_url": status.tunnel_url})
    return {"message": "Tunnel started", **status.to_dict()}


@router.post("/stop")
async def stop_tunnel(ctx: AuthContext = Depends(require_admin_or_above)) -> dict:
    stopped = await get_tunnel_manager().stop()
    return {
        "message": "Tunnel stopped" if stopped else "Tunnel was not running",
        "stopped": stopped,
    }
