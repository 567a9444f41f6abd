"""
数据模型层 (ORM Models)

这个模块定义了所有的数据库表结构，使用 SQLAlchemy ORM 映射。

数据模型关系图：
    Tenant (租户)
       │
       ├── User (用户)
       ├── MediaFile (图片/文件)
       ├── Collection (集合) ── CollectionItem ── MediaFile
       ├── Content (富文本内容)
       ├── Subscription (订阅) ── Invoice (发票)
       └── ContactMessage (支持请求)

平台级：Role、SystemSetting、FAQ、HelpArticle、AuditLog
"""

from jcms.models.audit_log import AuditLog
from jcms.models.collection import Collection, CollectionItem
from jcms.models.content import Content
from jcms.models.media import MediaFile
from jcms.models.role import Role
from jcms.models.subscription import Invoice, Subscription
from jcms.models.support import FAQ, ContactMessage, HelpArticle
from jcms.models.system_setting import DEFAULT_SYSTEM_SETTINGS, SystemSetting
from jcms.models.tenant import Tenant
from jcms.models.user import User

__all__ = [
    "AuditLog",
    "Collection",
    "CollectionItem",
    "ContactMessage",
    "Content",
    "DEFAULT_SYSTEM_SETTINGS",
    "FAQ",
    "HelpArticle",
    "Invoice",
    "MediaFile",
    "Role",
    "Subscription",
    "SystemSetting",
    "Tenant",
    "User",
]
