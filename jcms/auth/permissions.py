"""
角色与权限表

角色层级（高 -> 低）：superadmin > admin > editor > viewer

权限为字符串，资源类权限带作用域：
- images.read.own  只能访问自己的文件
- images.read.all  可以访问本租户（superadmin 为全部）的文件

内置表 ROLE_PERMISSIONS 是默认值，数据库 roles 表中的同名角色会覆盖它。
"""

SUPERADMIN = "superadmin"
ADMIN = "admin"
EDITOR = "editor"
VIEWER = "viewer"

ALL_ROLES = [SUPERADMIN, ADMIN, EDITOR, VIEWER]
TENANT_ROLES = [ADMIN, EDITOR, VIEWER]
ADMIN_ROLES = [SUPERADMIN, ADMIN]
EDITOR_ROLES = [SUPERADMIN, ADMIN, EDITOR]

ROLE_DESCRIPTIONS = {
    SUPERADMIN: "Platform owner with access to every tenant",
    ADMIN: "Tenant administrator",
    EDITOR: "Creates and manages own content and media",
    VIEWER: "Read-only access to own media",
}

# 权限定义：权限名 -> 说明
PERMISSIONS: dict[str, str] = {
    "users.create": "Create users",
    "users.read": "List and view users",
    "users.update": "Update users",
    "users.delete": "Deactivate or delete users",
    "images.create": "Upload media",
    "images.read.own": "View own media",
    "images.read.all": "View all media in scope",
    "images.update.own": "Update own media",
    "images.update.all": "Update all media in scope",
    "images.delete.own": "Delete own media",
    "images.delete.all": "Delete all media in scope",
    "content.create": "Create content",
    "content.read": "View content",
    "content.update": "Update content",
    "content.delete": "Delete content",
    "content.publish": "Publish or schedule content",
    "collections.create": "Create collections",
    "collections.read": "View collections",
    "collections.update": "Update collections and their items",
    "collections.delete": "Delete collections",
    "collections.publish": "Publish collections through the tunnel",
    "analytics.read": "View analytics dashboards",
    "tenants.manage": "Manage tenants, roles and platform settings",
}

ROLE_PERMISSIONS: dict[str, list[str]] = {
    SUPERADMIN: list(PERMISSIONS),
    ADMIN: [
        "users.create", "users.read", "users.update", "users.delete",
        "images.create", "images.read.all", "images.update.own", "images.delete.own",
        "content.create", "content.read", "content.update", "content.delete", "content.publish",
        "collections.create", "collections.read", "collections.update", "collections.delete",
        "collections.publish",
        "analytics.read",
    ],
    EDITOR: [
        "images.create", "images.read.own", "images.update.own", "images.delete.own",
        "content.create", "content.read", "content.update", "content.delete", "content.publish",
        "collections.create", "collections.read", "collections.update", "collections.delete",
    ],
    VIEWER: [
        "images.read.own",
        "content.read",
        "collections.read",
    ],
}


def default_permissions(role: str) -> list[str]:
    return list(ROLE_PERMISSIONS.get(role, []))


def has_permission(permissions: list[str] | set[str], permission: str) -> bool:
    """
    检查权限

    拥有 images.read.all 即视为拥有 images.read.own。
    """
    granted = set(permissions)
    if permission in granted:
        return True
    if permission.endswith(".own"):
        return permission[: -len(".own")] + ".all" in granted
    return False


def resolve_scope(permissions: list[str] | set[str], base_permission: str) -> str | None:
    """
    解析资源权限的作用域

    Args:
        base_permission: 不带作用域的权限，如 "images.read"

    Returns:
        "all" / "own" / None（无权限）
    """
    granted = set(permissions)
    if f"{base_permission}.all" in granted:
        return "all"
    if f"{base_permission}.own" in granted:
        return "own"
    return None
