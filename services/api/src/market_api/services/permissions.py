"""管理员权限服务。

统一账号中的管理员权限按角色计算；历史管理员权限从 JSON 文本解析。
"""

import json
import logging
from enum import StrEnum

from market_api.models.enums import LegacyAdminRole, UserRole

logger = logging.getLogger(__name__)


class AdminPermission(StrEnum):
    """管理员权限动作。"""

    FULL_SYSTEM_ACCESS = "FULL_SYSTEM_ACCESS"
    MANAGE_API_KEYS = "MANAGE_API_KEYS"
    MANAGE_ADMINS = "MANAGE_ADMINS"
    MANAGE_VENDORS = "MANAGE_VENDORS"
    MANAGE_USERS = "MANAGE_USERS"
    MANAGE_PRODUCTS = "MANAGE_PRODUCTS"
    MANAGE_ORDERS = "MANAGE_ORDERS"
    MANAGE_DISPUTES = "MANAGE_DISPUTES"
    VIEW_AUDIT_LOGS = "VIEW_AUDIT_LOGS"
    MANAGE_SYSTEM_SETTINGS = "MANAGE_SYSTEM_SETTINGS"
    VIEW_ANALYTICS = "VIEW_ANALYTICS"
    MANAGE_SECURITY = "MANAGE_SECURITY"


_ADMIN_DEFAULTS: tuple[AdminPermission, ...] = (
    AdminPermission.MANAGE_VENDORS,
    AdminPermission.MANAGE_USERS,
    AdminPermission.MANAGE_PRODUCTS,
    AdminPermission.MANAGE_ORDERS,
    AdminPermission.MANAGE_DISPUTES,
    AdminPermission.VIEW_AUDIT_LOGS,
    AdminPermission.VIEW_ANALYTICS,
)

_MASTER_ADMIN_DEFAULTS: tuple[AdminPermission, ...] = (
    AdminPermission.FULL_SYSTEM_ACCESS,
    AdminPermission.MANAGE_API_KEYS,
    AdminPermission.MANAGE_ADMINS,
    AdminPermission.MANAGE_VENDORS,
    AdminPermission.MANAGE_USERS,
    AdminPermission.MANAGE_PRODUCTS,
    AdminPermission.MANAGE_ORDERS,
    AdminPermission.MANAGE_DISPUTES,
    AdminPermission.VIEW_AUDIT_LOGS,
    AdminPermission.MANAGE_SYSTEM_SETTINGS,
    AdminPermission.VIEW_ANALYTICS,
    AdminPermission.MANAGE_SECURITY,
)


def default_permissions(role: str) -> list[str]:
    """返回角色默认权限，非管理员角色为空列表。"""
    if role == UserRole.MASTER_ADMIN:
        return [permission.value for permission in _MASTER_ADMIN_DEFAULTS]
    if role == UserRole.ADMIN:
        return [permission.value for permission in _ADMIN_DEFAULTS]
    return []


def legacy_admin_role(role: str) -> str:
    """统一角色映射到历史管理员词表。"""
    if role == UserRole.MASTER_ADMIN:
        return LegacyAdminRole.MASTER_ADMIN
    return LegacyAdminRole.ADMIN


def role_from_legacy(legacy_role: str) -> str:
    """历史管理员词表映射到统一角色。"""
    if legacy_role == LegacyAdminRole.MASTER_ADMIN:
        return UserRole.MASTER_ADMIN
    return UserRole.ADMIN


def parse_stored_permissions(raw: str | None) -> list[str]:
    """解析历史管理员的 JSON 权限列表，格式异常时返回空列表。"""
    if not raw:
        return []
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("malformed stored admin permissions ignored")
        return []
    if not isinstance(parsed, list):
        return []
    return [str(item) for item in parsed]
