"""主管理员初始化。"""

import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from market_api.core.config import Settings
from market_api.db.session import Store
from market_api.models.admin import AdminUser
from market_api.models.enums import LegacyAdminRole, UserRole
from market_api.models.user import User
from market_api.services.accounts import AccountInput, create_admin_user
from market_api.services.identity import AuthUser

logger = logging.getLogger(__name__)


def _master_admin_exists(db: Session) -> bool:
    """两张身份表中任一存在主管理员即视为已初始化。"""
    canonical = db.execute(
        select(func.count()).select_from(User).where(User.role == UserRole.MASTER_ADMIN, User.is_deleted.is_(False))
    ).scalar_one()
    if canonical:
        return True
    legacy = db.execute(
        select(func.count()).select_from(AdminUser).where(AdminUser.role == LegacyAdminRole.MASTER_ADMIN)
    ).scalar_one()
    return bool(legacy)


def seed_master_admin(store: Store, settings: Settings) -> AuthUser | None:
    """按环境配置创建首个主管理员；未配置或已存在时跳过。"""
    if not settings.master_admin_email or not settings.master_admin_password:
        logger.info("master admin bootstrap skipped: credentials not configured")
        return None
    if store.transaction(_master_admin_exists):
        logger.info("master admin bootstrap skipped: master admin already exists")
        return None

    result = create_admin_user(
        store,
        AccountInput(
            email=settings.master_admin_email,
            password=settings.master_admin_password,
            name=settings.master_admin_name,
            role=UserRole.MASTER_ADMIN,
        ),
        created_by="bootstrap",
    )
    if not result.success or result.data is None:
        error = result.error
        logger.error(
            "master admin bootstrap failed code=%s message=%s",
            error.code.value if error else None,
            error.message if error else None,
        )
        return None
    logger.info("master admin bootstrapped user_id=%s email=%s", result.data.user.id, result.data.user.email)
    return result.data.user
