"""
Cloudflare Tunnel 进程管理

通过 cloudflared 的 Quick Tunnel 把本地服务临时暴露到公网：
    cloudflared tunnel --url http://localhost:<port>/

cloudflared 启动后会在 stdout/stderr 打印形如
https://xxxx-yyyy.trycloudflare.com 的地址，读到这个地址即认为隧道就绪。

公开集合时，集合中的文件被复制到 <public_dir>/<clean-name>/ 下，
再由 FastAPI 的 /public 静态目录对外提供，公网地址为：
    <tunnel_url>/public/<clean-name>/<filename>

整个进程内只维护一个隧道，通过 get_tunnel_manager() 获取单例。
"""

import asyncio
import re
import shutil
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from jcms.config import get_settings
from jcms.exceptions import TunnelError, TunnelUnavailableError
from jcms.infra.logging import get_logger
from jcms.infra.storage import resolve_within
from jcms.infra.timeutils import utcnow

logger = get_logger(__name__)

TUNNEL_URL_PATTERN = re.compile(r"https://[a-zA-Z0-9-]+\.trycloudflare\.com")

_NON_NAME = re.compile(r"[^a-z0-9-]")
_DASHES = re.compile(r"-+")


def extract_tunnel_url(text: str) -> str | None:
    """从 cloudflared 输出中提取隧道地址"""
    match = TUNNEL_URL_PATTERN.search(text or "")
    return match.group(0) if match else None


def is_error_output(text: str) -> bool:
    """包含错误关键字且没有隧道地址的输出视为启动失败"""
    if not text or "trycloudflare.com" in text:
        return False
    return "failed to connect" in text or "ERR " in text


def clean_name(name: str) -> str:
    """
    集合名 -> 公开目录名

    "My Photos!" -> "my-photos"
    """
    cleaned = _NON_NAME.sub("-", (name or "").lower())
    return _DASHES.sub("-", cleaned).strip("-")


@dataclass
class TunnelStatus:
    is_running: bool
    tunnel_url: str | None
    cloudflared_path: str
    local_port: int
    started_at: str | None = None

    def to_dict(self) -> dict:
        return {
            "is_running": self.is_running,
            "tunnel_url": self.tunnel_url,
            "cloudflared_path": self.cloudflared_path,
            "local_port": self.local_port,
            "started_at": self.started_at,
        }


class TunnelManager:
    """
    cloudflared 子进程管理器

    - start(): 幂等，已运行时直接返回当前地址
    - stop(): 先 SIGTERM，超时后 SIGKILL
    - public_url(): 生成集合文件的公网地址
    """

    def __init__(
        self,
        cloudflared_path: str,
        local_port: int,
        public_root: Path,
        start_timeout: float = 60.0,
        stop_timeout: float = 5.0,
    ):
        self.cloudflared_path = cloudflared_path
        self.local_port = local_port
        self.public_root = public_root
        self.start_timeout = start_timeout
        self.stop_timeout = stop_timeout

        self.tunnel_url: str | None = None
        self.started_at = None
        self._process: asyncio.subprocess.Process | None = None
        self._tasks: list[asyncio.Task] = []
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls) -> "TunnelManager":
        settings = get_settings()
        return cls(
            cloudflared_path=settings.cloudflared_path,
            local_port=settings.tunnel_local_port,
            public_root=settings.public_path,
            start_timeout=settings.tunnel_start_timeout_seconds,
            stop_timeout=settings.tunnel_stop_timeout_seconds,
        )

    @property
    def is_running(self) -> bool:
        return self.tunnel_url is not None

    def status(self) -> TunnelStatus:
        return TunnelStatus(
            is_running=self.is_running,
            tunnel_url=self.tunnel_url,
            cloudflared_path=self.cloudflared_path,
            local_port=self.local_port,
            started_at=self.started_at.isoformat() if self.started_at else None,
        )

    async def is_available(self) -> tuple[bool, str | None]:
        """
        检查 cloudflared 是否可执行

        Returns:
            (是否可用, 版本信息或错误原因)
        """
        try:
            process = await asyncio.create_subprocess_exec(
                self.cloudflared_path,
                "--version",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
            output, _ = await asyncio.wait_for(process.communicate(), timeout=10)
        except (FileNotFoundError, PermissionError) as exc:
            return False, str(exc)
        except asyncio.TimeoutError:
            return False, "cloudflared --version timed out"

        text = output.decode("utf-8", errors="replace").strip()
        return process.returncode == 0, text or None

    async def start(self) -> TunnelStatus:
        """
        启动隧道并等待公网地址

        Raises:
            TunnelUnavailableError: cloudflared 不存在或不可执行
            TunnelError: 输出错误、进程提前退出或超时
        """
        async with self._lock:
            if self.is_running:
                return self.status()

            logger.info("启动 Cloudflare Tunnel", extra={"local_port": self.local_port})
            try:
                process = await asyncio.create_subprocess_exec(
                    self.cloudflared_path,
                    "tunnel",
                    "--url",
                    f"http://localhost:{self.local_port}/",
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except (FileNotFoundError, PermissionError) as exc:
                raise TunnelUnavailableError(f"cloudflared not available: {exc}") from exc

            self._process = process
            url_future: asyncio.Future[str] = asyncio.get_running_loop().create_future()
            self._tasks = [
                asyncio.create_task(self._pump(process.stdout, "stdout", url_future)),
                asyncio.create_task(self._pump(process.stderr, "stderr", url_future)),
                asyncio.create_task(self._watch_exit(process, url_future)),
            ]

            try:
                url = await asyncio.wait_for(url_future, timeout=self.start_timeout)
            except asyncio.TimeoutError:
                await self._terminate()
                raise TunnelError(
                    f"Timeout: could not establish tunnel within {int(self.start_timeout)} seconds"
                )
            except TunnelError:
                await self._terminate()
                raise

            self.tunnel_url = url
            self.started_at = utcnow()
            logger.info("Cloudflare Tunnel 已启动", extra={"tunnel_url": url})
            return self.status()

    async def stop(self) -> bool:
        """
        停止隧道

        Returns:
            之前是否在运行
        """
        async with self._lock:
            was_running = self.is_running or self._process is not None
            await self._terminate()
            if was_running:
                logger.info("Cloudflare Tunnel 已停止")
            return was_running

    async def _terminate(self) -> None:
        process = self._process
        if process is not None and process.returncode is None:
            try:
                process.terminate()
                await asyncio.wait_for(process.wait(), timeout=self.stop_timeout)
            except asyncio.TimeoutError:
                logger.warning("cloudflared 未响应 SIGTERM，强制结束")
                process.kill()
                await process.wait()
            except ProcessLookupError:
                pass

        for task in self._tasks:
            task.cancel()
        self._tasks = []
        self._reset()

    def _reset(self) -> None:
        self._process = None
        self.tunnel_url = None
        self.started_at = None

    async def _pump(self, stream, source: str, url_future: asyncio.Future) -> None:
        """逐行读取输出；读到地址或错误时结束等待，之后继续读空管道"""
        while True:
            line = await stream.readline()
            if not line:
                break
            text = line.decode("utf-8", errors="replace").rstrip()
            logger.debug(f"cloudflared {source}: {text}")
            if url_future.done():
                continue
            url = extract_tunnel_url(text)
            if url:
                url_future.set_result(url)
            elif is_error_output(text):
                logger.error("Cloudflare Tunnel 错误输出", extra={"output": text})
                url_future.set_exception(TunnelError(f"Failed to start tunnel: {text}"))

    async def _watch_exit(self, process: asyncio.subprocess.Process, url_future: asyncio.Future) -> None:
        code = await process.wait()
        logger.info("cloudflared 进程退出", extra={"returncode": code})
        if not url_future.done():
            url_future.set_exception(TunnelError(f"cloudflared exited with code {code}"))
        if self._process is process:
            self._reset()

    # ==================== 公开目录 ====================

    def public_url(self, collection_name: str, filename: str = "") -> str | None:
        """隧道未运行时返回 None"""
        if not self.is_running:
            return None
        return f"{self.tunnel_url}/public/{clean_name(collection_name)}/{filename}"

    def public_directory(self, collection_name: str) -> Path:
        name = clean_name(collection_name)
        if not name:
            raise TunnelError("Collection name produces an empty public directory")
        directory = resolve_within(self.public_root, name)
        directory.mkdir(parents=True, exist_ok=True)
        return directory

    def copy_to_public(self, source: str | Path, collection_name: str, filename: str) -> str:
        """
        复制文件到公开目录

        Returns:
            文件公网地址
        """
        if not self.is_running:
            raise TunnelError("Tunnel is not running")
        directory = self.public_directory(collection_name)
        target = resolve_within(directory, filename)
        shutil.copy2(source, target)
        logger.info("文件已复制到公开目录", extra={"destination": str(target)})
        return self.public_url(collection_name, filename)

    def remove_public_directory(self, collection_name: str) -> None:
        name = clean_name(collection_name)
        if not name:
            return
        directory = resolve_within(self.public_root, name)
        if directory.is_dir():
            shutil.rmtree(directory, ignore_errors=True)


@lru_cache(maxsize=1)
def get_tunnel_manager() -> TunnelManager:
    """进程内唯一的隧道管理器"""
    return TunnelManager.from_settings()
