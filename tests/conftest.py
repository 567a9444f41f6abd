"""
测试公共夹具

环境变量必须在导入 jcms 之前设置：配置对象和数据库引擎在导入时创建。
每个 API 测试使用全新的 SQLite 数据库（先删表再建表）。
"""

import io
import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="jcms-test-")

os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_DIR}/test.db"
os.environ["UPLOAD_DIR"] = os.path.join(_TMP_DIR, "uploads")
os.environ["PUBLIC_DIR"] = os.path.join(_TMP_DIR, "public")
os.environ["AUDIT_ENABLED"] = "false"
os.environ["JOBS_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["CLOUDFLARED_PATH"] = os.path.join(_TMP_DIR, "missing-cloudflared")
os.environ.pop("REDIS_URL", None)

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from PIL import Image  # noqa: E402

from jcms.auth.passwords import hash_password  # noqa: E402
from jcms.auth.rate_limit import get_login_rate_limiter  # noqa: E402
from jcms.auth.tokens import create_access_token  # noqa: E402
from jcms.db.session import SessionLocal, drop_models, init_models  # noqa: E402
from jcms.infra.tunnel import get_tunnel_manager  # noqa: E402
from jcms.main import app  # noqa: E402
from jcms.models import User  # noqa: E402
from jcms.schemas.tenant import TenantCreate  # noqa: E402
from jcms.services.tenants import create_tenant  # noqa: E402

PASSWORD = "Passw0rd!x"


def auth_headers(user: User) -> dict[str, str]:
    token, _ = create_access_token(user.id, user.role, user.tenant_id)
    return {"Authorization": f"Bearer {token}"}


async def make_user(tenant_id: str | None, username: str, role: str) -> User:
    async with SessionLocal() as session:
        user = User(
            tenant_id=tenant_id,
            username=username,
            email=f"{username}@example.com",
            hashed_password=hash_password(PASSWORD),
            role=role,
            is_active=True,
        )
        session.add(user)
        await session.commit()
        return user


async def make_tenant(subdomain: str, admin_username: str, **overrides):
    data = TenantCreate(
        name=f"{subdomain.title()} Inc",
        subdomain=subdomain,
        admin_username=admin_username,
        admin_email=f"{admin_username}@example.com",
        admin_password=PASSWORD,
        **overrides,
    )
    async with SessionLocal() as session:
        return await create_tenant(session, data)


@pytest.fixture(autouse=True)
def _reset_process_state():
    get_login_rate_limiter().reset()
    tunnel = get_tunnel_manager()
    tunnel.tunnel_url = None
    yield
    tunnel.tunnel_url = None


@pytest.fixture
async def database():
    await drop_models()
    await init_models()
    yield


@pytest.fixture
async def client(database):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def superadmin(database) -> User:
    return await make_user(None, "root", "superadmin")


@pytest.fixture
async def tenant_and_admin(database):
    """租户 acme 及其管理员"""
    return await make_tenant("acme", "acme_admin")


@pytest.fixture
async def tenant(tenant_and_admin):
    return tenant_and_admin[0]


@pytest.fixture
async def admin(tenant_and_admin) -> User:
    return tenant_and_admin[1]


@pytest.fixture
async def editor(tenant) -> User:
    return await make_user(tenant.id, "acme_editor", "editor")


@pytest.fixture
async def viewer(tenant) -> User:
    return await make_user(tenant.id, "acme_viewer", "viewer")


@pytest.fixture
async def other_tenant_admin(database) -> User:
    """另一个租户的管理员，用于隔离测试"""
    _, other_admin = await make_tenant("globex", "globex_admin")
    return other_admin


def png_bytes(size: tuple[int, int] = (64, 48), color: str = "red") -> bytes:
    """生成测试用 PNG"""
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


async def upload(client, user, *files: tuple[str, bytes, str], **form) -> dict:
    resp = await client.post(
        "/api/media/upload",
        files=[("files", f) for f in files],
        data=form,
        headers=auth_headers(user),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()
