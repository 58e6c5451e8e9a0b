"""统一登录与会话校验流程。

买家、商家、管理员共用同一条认证路径：
解析身份 -> 校验口令 -> 状态闸门 -> 签发会话 -> 记录登录时间。
角色只影响返回结构中附加的管理员字段与登录后的跳转目标。
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from market_api.db.session import Store
from market_api.models.admin import AdminUser
from market_api.models.enums import ADMIN_ROLES, UserRole, VerificationStatus
from market_api.models.user import User
from market_api.services import local_auth
from market_api.services.auth_result import AuthError, AuthErrorCode, AuthResult, run_pipeline
from market_api.services.identity import (
    AdminLoginData,
    CanonicalIdentity,
    LegacyIdentity,
    LoginData,
    ResolvedIdentity,
    ValidatedSession,
    admin_to_auth_user,
    enforce_status_gate,
    ensure_legacy_admin_active,
    identity_id,
    identity_role,
    normalize_email,
    to_auth_user,
    user_to_auth_user,
)
from market_api.services.sessions import create_session, extend_session, find_live_session, logout_by_token

logger = logging.getLogger(__name__)


def _resolve_identity(db: Session, email: str, password: str) -> ResolvedIdentity:
    """先查统一账号表，再查历史管理员表；历史管理员在此完成口令校验。"""
    user = db.execute(
        select(User).where(func.lower(User.email) == email, User.is_deleted.is_(False))
    ).scalar_one_or_none()
    if user is not None:
        return CanonicalIdentity(user)

    admin = db.execute(select(AdminUser).where(func.lower(AdminUser.email) == email)).scalar_one_or_none()
    if admin is None:
        raise AuthError(AuthErrorCode.USER_NOT_FOUND, "账号不存在。")
    ensure_legacy_admin_active(admin)
    if not local_auth.verify_password(password, admin.password_hash):
        raise AuthError(AuthErrorCode.INVALID_CREDENTIALS, "邮箱或口令错误。")
    return LegacyIdentity(admin)


def _stamp_login(identity: ResolvedIdentity) -> None:
    """在身份来源表上轮转登录时间。"""
    row = identity.admin if isinstance(identity, LegacyIdentity) else identity.user
    row.previous_login_at = row.last_login_at
    row.last_login_at = local_auth.utc_now()


def login_user(
    store: Store,
    email: str | None,
    password: str | None,
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> AuthResult[LoginData]:
    """统一登录。"""
    normalized_email = normalize_email(email or "")
    if not normalized_email or not password:
        return AuthResult.fail(AuthError(AuthErrorCode.INVALID_INPUT, "邮箱和口令均为必填项。"))

    def _login(db: Session) -> LoginData:
        identity = _resolve_identity(db, normalized_email, password)

        if isinstance(identity, CanonicalIdentity):
            user = identity.user
            if not local_auth.verify_password(password, user.password_hash):
                raise AuthError(AuthErrorCode.INVALID_CREDENTIALS, "邮箱或口令错误。")
            enforce_status_gate(user)

        role = identity_role(identity)
        if not role:
            raise AuthError(AuthErrorCode.ROLE_ASSIGNMENT_FAILED, "账号角色缺失。")

        if (
            isinstance(identity, CanonicalIdentity)
            and identity.user.role == UserRole.VENDOR
            and identity.user.verification_status is None
        ):
            # 出现即说明建号路径存在缺陷，单独记录便于统计。
            logger.warning("vendor verification state repaired on login user_id=%s", identity.user.id)
            identity.user.verification_status = VerificationStatus.PENDING

        session = create_session(
            db,
            user_id=identity_id(identity),
            user_role=role,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        _stamp_login(identity)
        db.flush()
        return LoginData(user=to_auth_user(identity), session=session)

    result = run_pipeline(store, _login, operation="login")
    if result.success and result.data is not None:
        logger.info("login succeeded user_id=%s role=%s", result.data.user.id, result.data.user.role)
    return result


def login_admin(
    store: Store,
    email: str | None,
    password: str | None,
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> AuthResult[AdminLoginData]:
    """管理员登录：复用统一登录，仅额外要求管理类角色。"""
    result = login_user(store, email, password, ip_address=ip_address, user_agent=user_agent)
    if not result.success or result.data is None:
        error = result.error
        if error is not None and error.code == AuthErrorCode.USER_NOT_FOUND:
            return AuthResult.fail(AuthError(AuthErrorCode.ADMIN_NOT_FOUND, "管理员不存在。"))
        return AuthResult.fail(error or AuthError(AuthErrorCode.TRANSACTION_FAILED, "登录失败。"))

    data = result.data
    if data.user.role not in ADMIN_ROLES:
        # 非管理员不应留下可用会话。
        logout_by_token(store, data.session.token)
        logger.info("admin login rejected for non-admin user_id=%s", data.user.id)
        return AuthResult.fail(AuthError(AuthErrorCode.ADMIN_NOT_FOUND, "管理员不存在。"))
    return AuthResult.ok(AdminLoginData(admin=data.user, session=data.session))


def validate_session_token(store: Store, token: str | None) -> AuthResult[ValidatedSession]:
    """校验会话令牌并滑动续期。"""
    if not token:
        return AuthResult.fail(AuthError(AuthErrorCode.INVALID_INPUT, "缺少会话令牌。"))

    def _validate(db: Session) -> ValidatedSession:
        row = find_live_session(db, token)
        if row is None:
            raise AuthError(AuthErrorCode.INVALID_CREDENTIALS, "会话无效或已过期。")

        if row.user_role in ADMIN_ROLES:
            admin = db.get(AdminUser, row.user_id)
            if admin is not None:
                ensure_legacy_admin_active(admin)
                return ValidatedSession(session=extend_session(db, row), user=admin_to_auth_user(admin))

        user = db.execute(
            select(User).where(User.id == row.user_id, User.is_deleted.is_(False))
        ).scalar_one_or_none()
        if user is None:
            raise AuthError(AuthErrorCode.USER_NOT_FOUND, "账号不存在。")
        enforce_status_gate(user)
        return ValidatedSession(session=extend_session(db, row), user=user_to_auth_user(user))

    return run_pipeline(store, _validate, operation="validate_session")
