"""领域枚举定义。"""

from enum import StrEnum


class UserRole(StrEnum):
    """账号角色。"""

    BUYER = "buyer"  # 买家。
    VENDOR = "vendor"  # 商家，需配套商家实体并经过审核。
    ADMIN = "admin"  # 平台管理员。
    MASTER_ADMIN = "master_admin"  # 主管理员，可管理其他管理员。


# 管理类角色集合，决定是否附加管理员字段与权限。
ADMIN_ROLES = frozenset({UserRole.ADMIN, UserRole.MASTER_ADMIN})


class UserStatus(StrEnum):
    """账号状态。"""

    ACTIVE = "active"  # 正常可用。
    PENDING = "pending"  # 待审核（商家初始状态），允许登录。
    SUSPENDED = "suspended"  # 暂停，禁止登录。
    BANNED = "banned"  # 封禁，禁止登录。
    DELETED = "deleted"  # 已删除，禁止登录。


class VerificationStatus(StrEnum):
    """商家审核状态。"""

    PENDING = "pending"  # 待审核。
    UNDER_REVIEW = "under_review"  # 审核中。
    VERIFIED = "verified"  # 已通过，可上架销售。
    REJECTED = "rejected"  # 已驳回。
    SUSPENDED = "suspended"  # 已暂停。


class StoreStatus(StrEnum):
    """店铺营业状态。"""

    ACTIVE = "active"  # 营业中。
    INACTIVE = "inactive"  # 未开业（审核通过前）。
    SUSPENDED = "suspended"  # 被暂停。


class LegacyAdminRole(StrEnum):
    """历史管理员表中的角色取值（大写词表）。"""

    ADMIN = "ADMIN"
    MASTER_ADMIN = "MASTER_ADMIN"


class AuditCategory(StrEnum):
    """审计日志分类。"""

    AUTH = "auth"  # 登录、注册、登出等认证事件。
    ADMIN = "admin"  # 管理员操作。
    SECURITY = "security"  # 安全相关事件。
