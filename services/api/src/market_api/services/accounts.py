"""统一建号流程。

所有账号（买家、商家、管理员）只能经由 `create_user` 写入 users 表：
入参校验在事务外完成，其余步骤在同一事务内全部成功或全部回滚。
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from market_api.core.config import get_settings
from market_api.db.session import Store
from market_api.models.admin import AdminUser
from market_api.models.base import new_id
from market_api.models.enums import ADMIN_ROLES, StoreStatus, UserRole, UserStatus, VerificationStatus
from market_api.models.user import User
from market_api.models.vendor import Vendor
from market_api.services import local_auth
from market_api.services.auth_result import AuthError, AuthErrorCode, AuthResult, run_pipeline
from market_api.services.identity import CreatedAccount, normalize_email, user_to_auth_user
from market_api.services.sessions import create_session as open_session

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass
class AccountInput:
    """建号入参。"""

    email: str
    password: str
    name: str
    role: str = UserRole.BUYER
    phone: str | None = None
    location: str | None = None
    avatar: str | None = None
    business_name: str | None = None
    business_type: str | None = None
    # 仅管理员角色使用；为空时按角色默认权限计算。
    permissions: list[str] | None = None


def _invalid(message: str) -> AuthError:
    return AuthError(AuthErrorCode.INVALID_INPUT, message)


def validate_account_input(payload: AccountInput) -> AccountInput:
    """校验并规范化建号入参，失败抛出 INVALID_INPUT。"""
    email = normalize_email(payload.email or "")
    name = (payload.name or "").strip()
    role = (payload.role or "").strip()
    if not email or not payload.password or not name or not role:
        raise _invalid("邮箱、口令、姓名和角色均为必填项。")
    if not EMAIL_PATTERN.match(email):
        raise _invalid("邮箱格式不正确。")
    min_length = get_settings().auth_password_min_length
    if len(payload.password) < min_length:
        raise _invalid(f"口令长度不能少于 {min_length} 位。")
    if role not in set(UserRole):
        raise _invalid("不支持的账号角色。")

    business_name = (payload.business_name or "").strip() or None
    if role == UserRole.VENDOR and not business_name:
        raise _invalid("商家账号必须填写店铺名称。")

    return AccountInput(
        email=email,
        password=payload.password,
        name=name,
        role=role,
        phone=payload.phone,
        location=payload.location,
        avatar=payload.avatar,
        business_name=business_name,
        business_type=payload.business_type,
        permissions=payload.permissions,
    )


def email_in_use(db: Session, email: str) -> bool:
    """检查邮箱是否已被 users 或 admin_users 占用（忽略大小写）。"""
    if db.execute(select(User.id).where(func.lower(User.email) == email)).first() is not None:
        return True
    return db.execute(select(AdminUser.id).where(func.lower(AdminUser.email) == email)).first() is not None


def _insert_account(db: Session, payload: AccountInput) -> str:
    is_vendor = payload.role == UserRole.VENDOR
    user = User(
        id=new_id("user"),
        email=payload.email,
        password_hash=local_auth.hash_password(payload.password),
        name=payload.name,
        role=payload.role,
        status=UserStatus.PENDING if is_vendor else UserStatus.ACTIVE,
        phone=payload.phone,
        location=payload.location,
        avatar=payload.avatar,
        business_name=payload.business_name if is_vendor else None,
        business_type=payload.business_type if is_vendor else None,
        verification_status=VerificationStatus.PENDING if is_vendor else None,
        is_deleted=False,
    )
    db.add(user)
    try:
        db.flush()
    except IntegrityError as exc:
        # 预检查与写入之间存在并发窗口，唯一约束冲突按邮箱已存在处理。
        if "email" in str(exc.orig).lower():
            raise AuthError(AuthErrorCode.EMAIL_EXISTS, "该邮箱已被注册。", details=str(exc.orig)) from exc
        raise AuthError(AuthErrorCode.ROLE_ASSIGNMENT_FAILED, "账号写入失败。", details=str(exc.orig)) from exc
    return user.id


def _insert_vendor(db: Session, user: User) -> None:
    if not user.verification_status:
        raise AuthError(AuthErrorCode.VERIFICATION_STATE_MISSING, "商家审核状态未初始化。")
    vendor = Vendor(
        id=new_id("vendor"),
        user_id=user.id,
        business_name=user.business_name or user.name,
        business_type=user.business_type,
        phone=user.phone,
        email=user.email,
        verification_status=VerificationStatus.PENDING,
        store_status=StoreStatus.INACTIVE,
    )
    db.add(vendor)
    try:
        db.flush()
    except SQLAlchemyError as exc:
        raise AuthError(AuthErrorCode.ROLE_ASSIGNMENT_FAILED, "商家资料创建失败。", details=str(exc)) from exc


def create_user(
    store: Store,
    payload: AccountInput,
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
    create_session: bool = True,
) -> AuthResult[CreatedAccount]:
    """统一建号：校验、查重、写入账号与商家资料、按需签发会话。"""
    try:
        normalized = validate_account_input(payload)
    except AuthError as exc:
        return AuthResult.fail(exc)

    def _create(db: Session) -> CreatedAccount:
        if email_in_use(db, normalized.email):
            raise AuthError(AuthErrorCode.EMAIL_EXISTS, "该邮箱已被注册。")

        user_id = _insert_account(db, normalized)

        # 强制从库中重新加载，确认角色已正确落库。
        stored = db.execute(
            select(User).where(User.id == user_id).execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if stored is None or not stored.role:
            raise AuthError(AuthErrorCode.ROLE_ASSIGNMENT_FAILED, "账号角色写入失败。")

        if stored.role == UserRole.VENDOR:
            _insert_vendor(db, stored)

        auth_user = user_to_auth_user(
            stored,
            permissions=normalized.permissions if stored.role in ADMIN_ROLES else None,
        )
        session = None
        if create_session:
            session = open_session(
                db, user_id=stored.id, user_role=stored.role, ip_address=ip_address, user_agent=user_agent
            )
        return CreatedAccount(user=auth_user, session=session)

    result = run_pipeline(store, _create, operation="create_user")
    if result.success and result.data is not None:
        logger.info(
            "account created user_id=%s role=%s email=%s",
            result.data.user.id,
            result.data.user.role,
            result.data.user.email,
        )
    return result


def register_user(
    store: Store,
    payload: AccountInput,
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> AuthResult[CreatedAccount]:
    """公开注册入口，仅允许买家与商家，注册成功即登录。"""
    if payload.role not in (UserRole.BUYER, UserRole.VENDOR):
        return AuthResult.fail(_invalid("公开注册仅支持买家或商家账号。"))
    return create_user(store, payload, ip_address=ip_address, user_agent=user_agent, create_session=True)


def create_admin_user(
    store: Store,
    payload: AccountInput,
    *,
    created_by: str | None = None,
) -> AuthResult[CreatedAccount]:
    """创建管理员账号，不签发会话。"""
    if payload.role not in ADMIN_ROLES:
        return AuthResult.fail(_invalid("仅支持创建 admin 或 master_admin 账号。"))
    result = create_user(store, payload, create_session=False)
    if result.success and result.data is not None:
        logger.info("admin account created user_id=%s created_by=%s", result.data.user.id, created_by)
    return result
