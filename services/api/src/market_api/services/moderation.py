"""账号治理、管理员管理与商家审核服务。

每个动作在单个事务内完成；暂停、封禁、删除以及停用管理员会同时吊销账号全部会话。
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from market_api.core.config import get_settings
from market_api.db.session import Store
from market_api.models.admin import AdminUser
from market_api.models.enums import (
    ADMIN_ROLES,
    LegacyAdminRole,
    StoreStatus,
    UserRole,
    UserStatus,
    VerificationStatus,
)
from market_api.models.user import User
from market_api.models.vendor import Vendor
from market_api.services import local_auth
from market_api.services.auth_result import AuthError, AuthErrorCode, AuthResult, run_pipeline
from market_api.services.identity import AuthUser, admin_to_auth_user, user_to_auth_user
from market_api.services.sessions import revoke_account_sessions

logger = logging.getLogger(__name__)


def _require_reason(reason: str | None) -> str:
    normalized = (reason or "").strip()
    if not normalized:
        raise AuthError(AuthErrorCode.INVALID_INPUT, "必须填写操作原因。")
    return normalized


def _load_account(db: Session, user_id: str, *, include_deleted: bool = False) -> User:
    user = db.get(User, user_id)
    if user is None or (user.is_deleted and not include_deleted):
        raise AuthError(AuthErrorCode.USER_NOT_FOUND, "账号不存在。")
    return user


def _run_account_action(
    store: Store,
    user_id: str,
    action: Callable[[Session, User], None],
    *,
    operation: str,
    include_deleted: bool = False,
) -> AuthResult[AuthUser]:
    def _apply(db: Session) -> AuthUser:
        user = _load_account(db, user_id, include_deleted=include_deleted)
        action(db, user)
        db.flush()
        return user_to_auth_user(user)

    result = run_pipeline(store, _apply, operation=operation)
    if result.success:
        logger.info("%s applied user_id=%s", operation, user_id)
    return result


def suspend_user(store: Store, user_id: str, *, reason: str | None) -> AuthResult[AuthUser]:
    """暂停账号并强制下线。"""

    def _suspend(db: Session, user: User) -> None:
        _require_reason(reason)
        user.status = UserStatus.SUSPENDED
        revoke_account_sessions(db, user.id)

    return _run_account_action(store, user_id, _suspend, operation="suspend_user")


def ban_user(store: Store, user_id: str, *, reason: str | None) -> AuthResult[AuthUser]:
    """封禁账号并强制下线。"""

    def _ban(db: Session, user: User) -> None:
        _require_reason(reason)
        user.status = UserStatus.BANNED
        revoke_account_sessions(db, user.id)

    return _run_account_action(store, user_id, _ban, operation="ban_user")


def activate_user(store: Store, user_id: str) -> AuthResult[AuthUser]:
    """恢复账号为正常状态。"""

    def _activate(db: Session, user: User) -> None:
        user.status = UserStatus.ACTIVE

    return _run_account_action(store, user_id, _activate, operation="activate_user")


def soft_delete_user(
    store: Store,
    user_id: str,
    *,
    reason: str | None,
    deleted_by: str | None = None,
) -> AuthResult[AuthUser]:
    """逻辑删除账号，保留数据以便恢复。"""

    def _delete(db: Session, user: User) -> None:
        user.deletion_reason = _require_reason(reason)
        user.status = UserStatus.DELETED
        user.is_deleted = True
        user.deleted_at = local_auth.utc_now()
        user.deleted_by = deleted_by
        revoke_account_sessions(db, user.id)

    return _run_account_action(store, user_id, _delete, operation="soft_delete_user")


def restore_user(store: Store, user_id: str) -> AuthResult[AuthUser]:
    """恢复已删除账号；未审核通过的商家恢复为待审核。"""

    def _restore(db: Session, user: User) -> None:
        user.is_deleted = False
        user.deleted_at = None
        user.deleted_by = None
        user.deletion_reason = None
        if user.role == UserRole.VENDOR and user.verification_status != VerificationStatus.VERIFIED:
            user.status = UserStatus.PENDING
        else:
            user.status = UserStatus.ACTIVE

    return _run_account_action(store, user_id, _restore, operation="restore_user", include_deleted=True)


def change_password(
    store: Store,
    user_id: str,
    current_password: str | None,
    new_password: str | None,
    *,
    keep_session_id: str | None = None,
) -> AuthResult[int]:
    """修改口令并吊销其他会话，返回吊销数量。"""
    min_length = get_settings().auth_password_min_length
    if not current_password or not new_password:
        return AuthResult.fail(AuthError(AuthErrorCode.INVALID_INPUT, "原口令与新口令均为必填项。"))
    if len(new_password) < min_length:
        return AuthResult.fail(AuthError(AuthErrorCode.INVALID_INPUT, f"口令长度不能少于 {min_length} 位。"))

    def _change(db: Session) -> int:
        user = _load_account(db, user_id)
        if not local_auth.verify_password(current_password, user.password_hash):
            raise AuthError(AuthErrorCode.INVALID_CREDENTIALS, "原口令错误。")
        user.password_hash = local_auth.hash_password(new_password)
        return revoke_account_sessions(db, user.id, keep_session_id=keep_session_id)

    result = run_pipeline(store, _change, operation="change_password")
    if result.success:
        logger.info("password changed user_id=%s revoked_sessions=%s", user_id, result.data)
    return result


def _run_vendor_transition(
    store: Store,
    user_id: str,
    transition: Callable[[User, Vendor], None],
    *,
    operation: str,
) -> AuthResult[AuthUser]:
    def _apply(db: Session) -> AuthUser:
        user = _load_account(db, user_id)
        if user.role != UserRole.VENDOR:
            raise AuthError(AuthErrorCode.INVALID_INPUT, "目标账号不是商家。")
        vendor = db.execute(select(Vendor).where(Vendor.user_id == user.id)).scalar_one_or_none()
        if vendor is None:
            raise AuthError(AuthErrorCode.VERIFICATION_STATE_MISSING, "商家资料不存在。")
        transition(user, vendor)
        # 账号上的审核状态始终与商家资料保持一致。
        user.verification_status = vendor.verification_status
        user.verification_notes = vendor.verification_notes
        user.verified_at = vendor.verified_at
        user.verified_by = vendor.verified_by
        db.flush()
        return user_to_auth_user(user)

    result = run_pipeline(store, _apply, operation=operation)
    if result.success:
        logger.info("%s applied vendor_user_id=%s", operation, user_id)
    return result


def approve_vendor(
    store: Store,
    user_id: str,
    *,
    reviewer_id: str | None = None,
    notes: str | None = None,
) -> AuthResult[AuthUser]:
    """审核通过：开店并激活账号。"""

    def _approve(user: User, vendor: Vendor) -> None:
        vendor.verification_status = VerificationStatus.VERIFIED
        vendor.verification_notes = notes
        vendor.verified_at = local_auth.utc_now()
        vendor.verified_by = reviewer_id
        vendor.store_status = StoreStatus.ACTIVE
        user.status = UserStatus.ACTIVE

    return _run_vendor_transition(store, user_id, _approve, operation="approve_vendor")


def reject_vendor(
    store: Store,
    user_id: str,
    *,
    reason: str | None,
    reviewer_id: str | None = None,
) -> AuthResult[AuthUser]:
    """驳回商家申请，必须给出原因。"""

    def _reject(user: User, vendor: Vendor) -> None:
        vendor.verification_notes = _require_reason(reason)
        vendor.verification_status = VerificationStatus.REJECTED
        vendor.verified_at = None
        vendor.verified_by = reviewer_id
        vendor.store_status = StoreStatus.INACTIVE

    return _run_vendor_transition(store, user_id, _reject, operation="reject_vendor")


def suspend_vendor(
    store: Store,
    user_id: str,
    *,
    reason: str | None,
    reviewer_id: str | None = None,
) -> AuthResult[AuthUser]:
    """暂停商家经营资格与店铺。"""

    def _suspend(user: User, vendor: Vendor) -> None:
        vendor.verification_notes = _require_reason(reason)
        vendor.verification_status = VerificationStatus.SUSPENDED
        vendor.verified_by = reviewer_id
        vendor.store_status = StoreStatus.SUSPENDED

    return _run_vendor_transition(store, user_id, _suspend, operation="suspend_vendor")


def mark_vendor_under_review(
    store: Store,
    user_id: str,
    *,
    reviewer_id: str | None = None,
    notes: str | None = None,
) -> AuthResult[AuthUser]:
    def _review(user: User, vendor: Vendor) -> None:
        vendor.verification_status = VerificationStatus.UNDER_REVIEW
        vendor.verification_notes = notes
        vendor.verified_by = reviewer_id

    return _run_vendor_transition(store, user_id, _review, operation="mark_vendor_under_review")


def _load_admin(db: Session, admin_id: str) -> User | AdminUser:
    """按 ID 解析管理员，先查统一账号表，再查历史管理员表。"""
    user = db.get(User, admin_id)
    if user is not None and not user.is_deleted and user.role in ADMIN_ROLES:
        return user
    admin = db.get(AdminUser, admin_id)
    if admin is None:
        raise AuthError(AuthErrorCode.ADMIN_NOT_FOUND, "管理员不存在。")
    return admin


def _admin_to_auth_user(row: User | AdminUser) -> AuthUser:
    if isinstance(row, AdminUser):
        return admin_to_auth_user(row)
    return user_to_auth_user(row)


def _is_master_admin(row: User | AdminUser) -> bool:
    if isinstance(row, AdminUser):
        return row.role == LegacyAdminRole.MASTER_ADMIN
    return row.role == UserRole.MASTER_ADMIN


def _count_active_master_admins(db: Session) -> int:
    canonical = db.execute(
        select(func.count())
        .select_from(User)
        .where(
            User.role == UserRole.MASTER_ADMIN,
            User.status == UserStatus.ACTIVE,
            User.is_deleted.is_(False),
        )
    ).scalar_one()
    legacy = db.execute(
        select(func.count())
        .select_from(AdminUser)
        .where(AdminUser.role == LegacyAdminRole.MASTER_ADMIN, AdminUser.is_active.is_(True))
    ).scalar_one()
    return canonical + legacy


def _guard_admin_removal(db: Session, row: User | AdminUser, acting_admin_id: str | None) -> None:
    if row.id == acting_admin_id:
        raise AuthError(AuthErrorCode.INVALID_INPUT, "不能停用或删除自己的管理员账号。")
    if _is_master_admin(row) and _count_active_master_admins(db) <= 1:
        raise AuthError(AuthErrorCode.INVALID_INPUT, "至少需要保留一名可用的主管理员。")


def list_admins(store: Store) -> list[AuthUser]:
    """列出两张表中的全部管理员，已停用的历史管理员状态为 suspended。"""

    def _list(db: Session) -> list[AuthUser]:
        users = db.execute(
            select(User)
            .where(User.role.in_(tuple(ADMIN_ROLES)), User.is_deleted.is_(False))
            .order_by(User.created_at)
        ).scalars()
        legacy = db.execute(select(AdminUser).order_by(AdminUser.created_at)).scalars()
        return [user_to_auth_user(user) for user in users] + [admin_to_auth_user(admin) for admin in legacy]

    return store.transaction(_list)


def revoke_admin_access(
    store: Store,
    admin_id: str,
    *,
    acting_admin_id: str | None = None,
) -> AuthResult[AuthUser]:
    """停用管理员并强制下线。

    历史管理员置 `is_active = False`，统一账号表中的管理员置为 suspended。
    """

    def _revoke(db: Session) -> AuthUser:
        row = _load_admin(db, admin_id)
        _guard_admin_removal(db, row, acting_admin_id)
        if isinstance(row, AdminUser):
            row.is_active = False
        else:
            row.status = UserStatus.SUSPENDED
        revoked = revoke_account_sessions(db, row.id)
        db.flush()
        logger.info("admin access revoked admin_id=%s revoked_sessions=%s", row.id, revoked)
        return _admin_to_auth_user(row)

    return run_pipeline(store, _revoke, operation="revoke_admin_access")


def activate_admin(store: Store, admin_id: str) -> AuthResult[AuthUser]:
    """恢复管理员访问权限。"""

    def _activate(db: Session) -> AuthUser:
        row = _load_admin(db, admin_id)
        if isinstance(row, AdminUser):
            row.is_active = True
        else:
            row.status = UserStatus.ACTIVE
        db.flush()
        return _admin_to_auth_user(row)

    result = run_pipeline(store, _activate, operation="activate_admin")
    if result.success:
        logger.info("admin access activated admin_id=%s", admin_id)
    return result


def delete_admin(
    store: Store,
    admin_id: str,
    *,
    acting_admin_id: str | None = None,
) -> AuthResult[AuthUser]:
    """删除管理员：历史管理员物理删除，统一账号逻辑删除；不能删除最后一名主管理员。"""

    def _delete(db: Session) -> AuthUser:
        row = _load_admin(db, admin_id)
        _guard_admin_removal(db, row, acting_admin_id)
        revoke_account_sessions(db, row.id)
        if isinstance(row, AdminUser):
            snapshot = admin_to_auth_user(row)
            db.delete(row)
            db.flush()
            return snapshot
        row.status = UserStatus.DELETED
        row.is_deleted = True
        row.deleted_at = local_auth.utc_now()
        row.deleted_by = acting_admin_id
        row.deletion_reason = "admin removed"
        db.flush()
        return user_to_auth_user(row)

    result = run_pipeline(store, _delete, operation="delete_admin")
    if result.success:
        logger.info("admin deleted admin_id=%s deleted_by=%s", admin_id, acting_admin_id)
    return result


def revoke_user_sessions(store: Store, user_id: str) -> AuthResult[int]:
    """吊销账号全部会话，返回吊销数量；账号不存在时返回 USER_NOT_FOUND。"""

    def _revoke(db: Session) -> int:
        user = _load_account(db, user_id, include_deleted=True)
        return revoke_account_sessions(db, user.id)

    result = run_pipeline(store, _revoke, operation="revoke_user_sessions")
    if result.success:
        logger.info("sessions revoked user_id=%s count=%s", user_id, result.data)
    return result
