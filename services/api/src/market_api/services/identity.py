"""身份解析与归一化。

登录与会话校验需要在 users 与 admin_users 两张表之间解析身份。
解析结果在流程内部用 `CanonicalIdentity | LegacyIdentity` 区分来源，
离开流程前统一转换为 `AuthUser`，来源差异不向外泄露。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from market_api.models.admin import AdminUser
from market_api.models.enums import ADMIN_ROLES, UserRole, UserStatus, VerificationStatus
from market_api.models.user import User
from market_api.services.auth_result import AuthError, AuthErrorCode
from market_api.services.local_auth import as_utc
from market_api.services.permissions import (
    default_permissions,
    legacy_admin_role,
    parse_stored_permissions,
    role_from_legacy,
)


@dataclass
class AuthUser:
    """对外统一身份结构。"""

    id: str
    email: str
    name: str
    role: str
    status: str
    phone: str | None = None
    location: str | None = None
    avatar: str | None = None
    business_name: str | None = None
    business_type: str | None = None
    verification_status: str | None = None
    store_description: str | None = None
    store_banner: str | None = None
    store_logo: str | None = None
    created_at: datetime | None = None
    # 管理员角色（ADMIN/MASTER_ADMIN），仅管理类角色填充。
    admin_role: str | None = None
    permissions: list[str] | None = None

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def is_verified(self) -> bool:
        return self.verification_status == VerificationStatus.VERIFIED


@dataclass
class AuthSession:
    """会话信息；`token` 只在签发时出现。"""

    id: str
    user_id: str
    user_role: str
    expires_at: datetime
    token: str | None = field(default=None, repr=False)


@dataclass
class CreatedAccount:
    user: AuthUser
    session: AuthSession | None = None


@dataclass
class LoginData:
    user: AuthUser
    session: AuthSession


@dataclass
class AdminLoginData:
    admin: AuthUser
    session: AuthSession


@dataclass
class ValidatedSession:
    """会话校验结果。"""

    session: AuthSession
    user: AuthUser


@dataclass(frozen=True)
class CanonicalIdentity:
    """解析自 users 表的身份。"""

    user: User


@dataclass(frozen=True)
class LegacyIdentity:
    """解析自 admin_users 表的身份，口令已在解析阶段校验。"""

    admin: AdminUser


ResolvedIdentity = CanonicalIdentity | LegacyIdentity


def normalize_email(value: str) -> str:
    """标准化邮箱字段（去空格 + 小写）。"""
    return value.strip().lower()


def identity_id(identity: ResolvedIdentity) -> str:
    if isinstance(identity, LegacyIdentity):
        return identity.admin.id
    return identity.user.id


def identity_role(identity: ResolvedIdentity) -> str | None:
    """返回统一词表下的角色。"""
    if isinstance(identity, LegacyIdentity):
        return role_from_legacy(identity.admin.role)
    return identity.user.role


def enforce_status_gate(user: User) -> None:
    """账号状态闸门：暂停、封禁、删除的账号不可登录或续期。"""
    if user.status == UserStatus.SUSPENDED:
        raise AuthError(AuthErrorCode.USER_SUSPENDED, "账号已被暂停，请联系客服。")
    if user.status == UserStatus.BANNED:
        raise AuthError(AuthErrorCode.USER_BANNED, "账号已被封禁，请联系客服。")
    if user.status == UserStatus.DELETED:
        raise AuthError(AuthErrorCode.USER_DELETED, "账号已被删除。")


def ensure_legacy_admin_active(admin: AdminUser) -> None:
    if not admin.is_active:
        raise AuthError(AuthErrorCode.ADMIN_DISABLED, "管理员账号已停用。")


def user_to_auth_user(user: User, *, permissions: list[str] | None = None) -> AuthUser:
    """users 行转换为统一身份，管理类角色附加管理员字段。"""
    auth_user = AuthUser(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        status=user.status,
        phone=user.phone,
        location=user.location,
        avatar=user.avatar,
        business_name=user.business_name,
        business_type=user.business_type,
        verification_status=user.verification_status,
        store_description=user.store_description,
        store_banner=user.store_banner,
        store_logo=user.store_logo,
        created_at=as_utc(user.created_at),
    )
    if user.role in ADMIN_ROLES:
        auth_user.admin_role = legacy_admin_role(user.role)
        auth_user.permissions = list(permissions) if permissions is not None else default_permissions(user.role)
    return auth_user


def admin_to_auth_user(admin: AdminUser) -> AuthUser:
    """历史管理员行转换为统一身份，权限取自存储；已停用映射为 suspended。"""
    return AuthUser(
        id=admin.id,
        email=admin.email,
        name=admin.name,
        role=role_from_legacy(admin.role),
        status=UserStatus.ACTIVE if admin.is_active else UserStatus.SUSPENDED,
        created_at=as_utc(admin.created_at),
        admin_role=admin.role,
        permissions=parse_stored_permissions(admin.permissions),
    )


def to_auth_user(identity: ResolvedIdentity) -> AuthUser:
    if isinstance(identity, LegacyIdentity):
        return admin_to_auth_user(identity.admin)
    return user_to_auth_user(identity.user)


def get_route_for_role(role: str) -> str:
    """登录后按角色决定跳转目标，与认证方式无关。"""
    if role in (UserRole.MASTER_ADMIN, UserRole.ADMIN):
        return "/admin"
    if role == UserRole.VENDOR:
        return "/vendor"
    return "/buyer/dashboard"


def can_vendor_sell(verification_status: str | None) -> bool:
    """仅审核通过的商家可以上架销售。"""
    return verification_status == VerificationStatus.VERIFIED
