"""历史管理员模型。"""

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from market_api.models.base import Base, StringPrimaryKeyMixin, TimestampMixin


class AdminUser(Base, StringPrimaryKeyMixin, TimestampMixin):
    """历史管理员实体。

    仅为兼容存量管理员保留；新管理员一律通过统一建号流程写入 users 表。
    与 users 表共享同一邮箱命名空间。
    """

    __tablename__ = "admin_users"
    __table_args__ = (CheckConstraint("role IN ('ADMIN', 'MASTER_ADMIN')", name="role"),)

    email: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(256), nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    # 大写角色词表（ADMIN/MASTER_ADMIN），与 users.role 不同。
    role: Mapped[str] = mapped_column(String(32), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # 权限列表，JSON 文本数组。
    permissions: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[str | None] = mapped_column(String(64))
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    previous_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
