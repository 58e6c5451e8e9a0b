"""ORM 模型导出集合。"""

from market_api.models.admin import AdminUser
from market_api.models.audit import AuditLog
from market_api.models.auth import UserSession
from market_api.models.user import User
from market_api.models.vendor import Vendor

__all__ = [
    "AdminUser",
    "AuditLog",
    "User",
    "UserSession",
    "Vendor",
]
